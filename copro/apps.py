from django.apps import AppConfig


class CoproConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'copro'
    verbose_name = 'Co-ownership'
