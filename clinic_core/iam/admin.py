# clinic_core/iam/admin.py
from django.contrib import admin

from clinic_core.iam.models import StaffProfile


@admin.register(StaffProfile)
class StaffProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "facility", "role", "is_active", "updated_at")
    list_filter = ("role", "is_active", "facility")
    search_fields = ("user__username", "display_name", "facility__code")
    readonly_fields = ("id", "created_at", "updated_at")
