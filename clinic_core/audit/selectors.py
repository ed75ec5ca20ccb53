# clinic_core/audit/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from clinic_core.audit.models import AuditEntry


def list_audit_entries(
    *,
    facility_id: UUID,
    entity_type: str | None = None,
    entity_id: UUID | None = None,
    action: str | None = None,
    actor_user_id: int | None = None,
) -> QuerySet[AuditEntry]:
    qs = AuditEntry.objects.filter(facility_id=facility_id)

    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id:
        qs = qs.filter(entity_id=entity_id)
    if action:
        qs = qs.filter(action=action)
    if actor_user_id is not None:
        qs = qs.filter(actor_user_id=actor_user_id)

    return qs.order_by("-occurred_at", "-id")


def encounter_timeline(*, facility_id: UUID, encounter_id: UUID) -> QuerySet[AuditEntry]:
    """
    Everything that happened to an encounter and its clinical records, oldest first.
    """
    return AuditEntry.objects.filter(facility_id=facility_id, encounter_id=encounter_id).order_by(
        "occurred_at", "id"
    )
