# clinic_core/patients/admin.py
from django.contrib import admin

from clinic_core.patients.models import Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ("patient_code", "last_name", "first_name", "facility_id", "deleted_at", "created_at")
    list_filter = ("facility_id",)
    search_fields = ("patient_code", "first_name", "last_name")
    readonly_fields = ("id", "created_at", "updated_at")
