# clinic_core/audit/services.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from django.utils import timezone

from clinic_core.audit.models import AuditEntry
from clinic_core.iam.actor import Actor

logger = logging.getLogger(__name__)


class AuditService:
    """
    Central audit writer.

    Deliberately has no transaction of its own: callers invoke it inside the
    transaction of the mutation, and any failure here propagates so the whole
    unit rolls back. No retries.
    """

    @staticmethod
    def record(
        *,
        actor: Actor,
        action: str,
        entity_type: str,
        entity_id: UUID,
        metadata: Optional[Dict[str, Any]] = None,
        encounter_id: Optional[UUID] = None,
        occurred_at: Optional[datetime] = None,
    ) -> AuditEntry:
        if encounter_id is None and entity_type == "encounter":
            encounter_id = entity_id

        entry = AuditEntry.objects.create(
            facility_id=actor.facility_id,
            actor_user_id=actor.user_id,
            actor_name=actor.name,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            encounter_id=encounter_id,
            metadata=metadata or {},
            occurred_at=occurred_at or timezone.now(),
        )
        logger.debug("audit %s %s:%s by user=%s", action, entity_type, entity_id, actor.user_id)
        return entry
