# clinic_core/audit/models.py
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class AuditAction(models.TextChoices):
    CREATE = "CREATE", "Create"
    UPDATE = "UPDATE", "Update"
    DELETE_SOFT = "DELETE_SOFT", "Soft delete"


class AuditEntry(models.Model):
    """
    Immutable audit record.
    Written in the same transaction as the mutation it describes, so the
    timeline never shows a transition that did not commit (and vice versa).
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    facility_id = models.UUIDField(db_index=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="audit_entries",
        null=True,
        blank=True,
    )
    actor_name = models.CharField(max_length=255, blank=True, default="")

    action = models.CharField(max_length=16, choices=AuditAction.choices, db_index=True)
    entity_type = models.CharField(max_length=64, db_index=True)  # e.g. "encounter", "diagnosis"
    entity_id = models.UUIDField(db_index=True)

    # Owning encounter, so child records show up on the encounter timeline
    encounter_id = models.UUIDField(null=True, blank=True, db_index=True)

    metadata = models.JSONField(default=dict, blank=True)
    occurred_at = models.DateTimeField(db_index=True)

    class Meta:
        db_table = "audit_audit_entry"
        ordering = ("-occurred_at",)
        indexes = [
            models.Index(fields=["facility_id", "occurred_at"]),
            models.Index(fields=["entity_type", "entity_id"]),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("AuditEntry is immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("AuditEntry is immutable.")

    def __str__(self) -> str:
        return f"{self.action} {self.entity_type}:{self.entity_id}"
