# clinic_core/facilities/admin.py
from __future__ import annotations

from django.contrib import admin

from clinic_core.facilities.models import Facility


@admin.register(Facility)
class FacilityAdmin(admin.ModelAdmin):
    list_display = ("name", "code", "timezone", "is_active", "updated_at")
    list_filter = ("is_active", "timezone")
    search_fields = ("name", "code")
    readonly_fields = ("id", "created_at", "updated_at")
    ordering = ("name",)
