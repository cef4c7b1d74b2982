from django.apps import AppConfig


class OutlineConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'outline'
    verbose_name = 'Project template outline'
