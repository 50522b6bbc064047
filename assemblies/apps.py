from django.apps import AppConfig


class AssembliesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'assemblies'
    verbose_name = 'General assemblies'
