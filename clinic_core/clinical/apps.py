# clinic_core/clinical/apps.py
from django.apps import AppConfig


class ClinicalConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "clinic_core.clinical"
