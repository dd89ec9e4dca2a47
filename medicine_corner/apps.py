from django.apps import AppConfig


class MedicineCornerConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'medicine_corner'
    verbose_name = 'Medicine Corner'
