from django.apps import AppConfig


class OpticsCornerConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'optics_corner'
    verbose_name = 'Optics Corner'
