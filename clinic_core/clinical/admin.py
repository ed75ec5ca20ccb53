# clinic_core/clinical/admin.py
from django.contrib import admin

from clinic_core.clinical.models import Diagnosis, LabOrder, LabOrderItem, Prescription, PrescriptionItem


@admin.register(Diagnosis)
class DiagnosisAdmin(admin.ModelAdmin):
    list_display = ("code", "text", "encounter", "created_by", "created_at", "deleted_at")
    list_filter = ("facility_id",)
    search_fields = ("code", "text")


class PrescriptionItemInline(admin.TabularInline):
    model = PrescriptionItem
    extra = 0


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ("id", "encounter", "created_by", "created_at")
    inlines = [PrescriptionItemInline]


class LabOrderItemInline(admin.TabularInline):
    model = LabOrderItem
    extra = 0


@admin.register(LabOrder)
class LabOrderAdmin(admin.ModelAdmin):
    list_display = ("id", "encounter", "status", "requested_by", "created_at")
    list_filter = ("status",)
    inlines = [LabOrderItemInline]
