# clinic_core/facilities/models.py
from __future__ import annotations

import uuid
from django.db import models


class Facility(models.Model):
    """
    A walk-in clinic site.

    The timezone defines the facility's calendar "today": queues only show
    encounters whose visit_date matches it, and the one-visit-per-day rule is
    keyed on the same date.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=255)
    code = models.SlugField(max_length=64, unique=True)

    # Locale / ops
    timezone = models.CharField(max_length=64, default="Asia/Manila")

    is_active = models.BooleanField(default=True, db_index=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "facilities_facility"
        ordering = ("name",)

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"
