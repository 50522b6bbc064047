from django.apps import AppConfig


class ResidencesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'residences'
    verbose_name = 'Residences'
