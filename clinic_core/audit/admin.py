# clinic_core/audit/admin.py
from django.contrib import admin

from clinic_core.audit.models import AuditEntry


@admin.register(AuditEntry)
class AuditEntryAdmin(admin.ModelAdmin):
    list_display = (
        "action",
        "entity_type",
        "entity_id",
        "facility_id",
        "actor_name",
        "occurred_at",
    )
    list_filter = ("facility_id", "action", "entity_type")
    search_fields = ("entity_type", "entity_id", "actor_name")
    readonly_fields = ("occurred_at",)
    ordering = ("-occurred_at",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
