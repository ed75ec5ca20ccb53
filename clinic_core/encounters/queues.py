# clinic_core/encounters/queues.py
"""
Queue visibility and per-item claimability.

Triage is a strict FIFO with no skipping and one claim per worker. The doctor
queue is FIFO too, but any unclaimed triaged patient can be picked.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence
from uuid import UUID

from django.db import models
from django.utils import timezone

from clinic_core.encounters.constants import EncounterStatus
from clinic_core.encounters.leases import live_lease
from clinic_core.encounters.models import Encounter
from clinic_core.facilities.selectors import facility_today
from clinic_core.iam.actor import Actor


class QueueKind(models.TextChoices):
    TRIAGE = "TRIAGE", "Triage"
    DOCTOR = "DOCTOR", "Doctor"


class ItemState(models.TextChoices):
    SELECTED = "SELECTED", "Selected"
    AVAILABLE = "AVAILABLE", "Available"
    CLAIMED_BY_OTHER = "CLAIMED_BY_OTHER", "Claimed by another worker"
    DISABLED = "DISABLED", "Disabled"


class Priority(models.TextChoices):
    HIGH = "HIGH", "High"
    MEDIUM = "MEDIUM", "Medium"
    LOW = "LOW", "Low"


ENTRY_STATUSES = {
    QueueKind.TRIAGE: (EncounterStatus.WAIT_TRIAGE,),
    QueueKind.DOCTOR: (EncounterStatus.TRIAGED, EncounterStatus.WAIT_DOCTOR),
}

HIGH_PRIORITY_KEYWORDS = (
    "chest pain",
    "difficulty breathing",
    "shortness of breath",
    "severe",
    "unconscious",
    "bleeding",
    "stroke",
    "heart attack",
    "seizure",
    "trauma",
    "emergency",
)
LOW_PRIORITY_KEYWORDS = ("follow up", "checkup", "routine", "mild", "minor")


def priority_for(chief_complaint: Optional[str]) -> str:
    """
    Display hint only. Never affects ordering or claimability.
    """
    text = (chief_complaint or "").lower()
    if any(k in text for k in HIGH_PRIORITY_KEYWORDS):
        return Priority.HIGH
    if any(k in text for k in LOW_PRIORITY_KEYWORDS):
        return Priority.LOW
    return Priority.MEDIUM


@dataclass(frozen=True)
class QueueEntry:
    encounter: Encounter
    position: int
    state: str
    priority: str


def visible_queue(*, facility_id: UUID, kind: str, day: date) -> List[Encounter]:
    return list(
        Encounter.objects.alive()
        .filter(
            facility_id=facility_id,
            status__in=ENTRY_STATUSES[kind],
            visit_date=day,
            patient__deleted_at__isnull=True,
        )
        .select_related("patient")
        .order_by("occurred_at", "id")
    )


def triage_item_states(
    items: Sequence[Encounter],
    worker_id: int,
    now: datetime,
    ttl: Optional[timedelta] = None,
) -> List[str]:
    leases = [live_lease(e, now, ttl) for e in items]

    # A worker holding a lease works that patient and nothing else.
    for i, lease in enumerate(leases):
        if lease is not None and lease.owner_id == worker_id:
            return [ItemState.SELECTED if j == i else ItemState.DISABLED for j in range(len(items))]

    first_free = next((i for i, lease in enumerate(leases) if lease is None), None)

    states: List[str] = []
    for i, lease in enumerate(leases):
        if first_free is None or i < first_free:
            states.append(ItemState.CLAIMED_BY_OTHER)
        elif i == first_free:
            states.append(ItemState.AVAILABLE)
        elif lease is not None:
            states.append(ItemState.CLAIMED_BY_OTHER)
        else:
            states.append(ItemState.DISABLED)
    return states


def doctor_item_states(items: Sequence[Encounter], doctor_id: int) -> List[str]:
    states: List[str] = []
    for e in items:
        if e.doctor_id is None:
            states.append(ItemState.AVAILABLE if e.status == EncounterStatus.TRIAGED else ItemState.DISABLED)
        elif e.doctor_id == doctor_id:
            states.append(ItemState.SELECTED)
        else:
            states.append(ItemState.CLAIMED_BY_OTHER)
    return states


def item_states(kind: str, items: Sequence[Encounter], worker_id: int, now: datetime) -> List[str]:
    if kind == QueueKind.TRIAGE:
        return triage_item_states(items, worker_id, now)
    return doctor_item_states(items, worker_id)


def item_state(
    item: Encounter,
    index: int,
    queue: Sequence[Encounter],
    worker_id: int,
    now: datetime,
    kind: str = QueueKind.TRIAGE,
) -> str:
    if index < 0 or index >= len(queue) or queue[index].pk != item.pk:
        raise ValueError("item is not at the given position in the queue")
    return item_states(kind, queue, worker_id, now)[index]


class QueuePolicy:
    CLAIMABLE = frozenset({ItemState.AVAILABLE, ItemState.SELECTED})

    @staticmethod
    def claimable_by(
        *,
        queue: Sequence[Encounter],
        encounter_id: UUID,
        worker_id: int,
        now: datetime,
        kind: str = QueueKind.TRIAGE,
    ) -> bool:
        """
        Server-side no-skip check: the target must be the worker's current
        selection or the first free item.
        """
        for index, e in enumerate(queue):
            if e.pk == encounter_id:
                return item_state(e, index, queue, worker_id, now, kind) in QueuePolicy.CLAIMABLE
        return False


def list_queue(
    *,
    actor: Actor,
    kind: str,
    day: Optional[date] = None,
    now: Optional[datetime] = None,
) -> List[QueueEntry]:
    now = now or timezone.now()
    day = day or facility_today(actor.facility_id, now)

    items = visible_queue(facility_id=actor.facility_id, kind=kind, day=day)
    states = item_states(kind, items, actor.user_id, now)

    return [
        QueueEntry(encounter=e, position=i + 1, state=s, priority=priority_for(e.chief_complaint))
        for i, (e, s) in enumerate(zip(items, states))
    ]
