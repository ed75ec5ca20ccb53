# clinic_core/common/models.py
from __future__ import annotations

import uuid
from django.db import models


class TimeStampedModel(models.Model):
    """
    Standard timestamps for all entities.
    """
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class FacilityScopedModel(TimeStampedModel):
    """
    Every clinical row belongs to exactly one facility.
    Services always filter by facility_id taken from the acting staff member.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    facility_id = models.UUIDField(db_index=True)

    class Meta:
        abstract = True


class SoftDeleteQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)
