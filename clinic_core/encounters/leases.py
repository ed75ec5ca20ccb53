# clinic_core/encounters/leases.py
"""
Triage lease coordination.

A lease is (owner, acquired_at) stored on the Encounter row. It is live while
now - acquired_at < TTL; an expired lease behaves exactly like no lease.
Nothing sweeps stale leases: the columns are overwritten or cleared by the
next write that touches the row.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional, Union
from uuid import UUID

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from clinic_core.common.results import ErrorCode
from clinic_core.encounters.constants import EncounterStatus
from clinic_core.encounters.models import Encounter

logger = logging.getLogger(__name__)


def lease_ttl() -> timedelta:
    return timedelta(seconds=getattr(settings, "ENCOUNTER_LEASE_TTL_SECONDS", 900))


def is_expired(claimed_at: Optional[datetime], now: datetime, ttl: Optional[timedelta] = None) -> bool:
    if claimed_at is None:
        return True
    return now - claimed_at >= (ttl or lease_ttl())


@dataclass(frozen=True)
class HeldLease:
    owner_id: int
    acquired_at: datetime

    def is_live(self, now: datetime, ttl: Optional[timedelta] = None) -> bool:
        return not is_expired(self.acquired_at, now, ttl)


Lease = Optional[HeldLease]


@dataclass(frozen=True)
class LeaseGranted:
    lease: HeldLease
    previous: Lease = None


@dataclass(frozen=True)
class LeaseReleased:
    previous: Lease = None


@dataclass(frozen=True)
class LeaseDenied:
    reason: str


AcquireOutcome = Union[LeaseGranted, LeaseDenied]
ReleaseOutcome = Union[LeaseReleased, LeaseDenied]


def lease_of(encounter: Encounter) -> Lease:
    if encounter.claimed_by_id is None or encounter.claimed_at is None:
        return None
    return HeldLease(owner_id=encounter.claimed_by_id, acquired_at=encounter.claimed_at)


def live_lease(encounter: Encounter, now: datetime, ttl: Optional[timedelta] = None) -> Lease:
    lease = lease_of(encounter)
    if lease is None or not lease.is_live(now, ttl):
        return None
    return lease


def claimable_q(worker_id: int, now: datetime, ttl: Optional[timedelta] = None) -> Q:
    """
    Row predicate: no lease, an expired lease, or a lease already held by worker_id.
    """
    cutoff = now - (ttl or lease_ttl())
    return (
        Q(claimed_by__isnull=True)
        | Q(claimed_at__isnull=True)
        | Q(claimed_by_id=worker_id)
        | Q(claimed_at__lte=cutoff)
    )


class LeaseManager:
    """
    Conditional-update lease writes. The affected row count is the outcome;
    the follow-up read only explains a denial.
    """

    @staticmethod
    def _scope(*, encounter_id: UUID, facility_id: UUID):
        return Encounter.objects.alive().filter(id=encounter_id, facility_id=facility_id)

    @staticmethod
    def try_acquire(
        *,
        encounter_id: UUID,
        worker_id: int,
        facility_id: UUID,
        now: Optional[datetime] = None,
    ) -> AcquireOutcome:
        now = now or timezone.now()
        scope = LeaseManager._scope(encounter_id=encounter_id, facility_id=facility_id).filter(
            status=EncounterStatus.WAIT_TRIAGE
        )

        before = scope.only("id", "claimed_by", "claimed_at").first()
        if before is None:
            logger.debug("lease acquire: encounter %s not found in WAIT_TRIAGE", encounter_id)
            return LeaseDenied(ErrorCode.NOT_FOUND)

        updated = scope.filter(claimable_q(worker_id, now)).update(
            claimed_by_id=worker_id,
            claimed_at=now,
            updated_at=now,
        )
        if updated == 1:
            logger.info("lease granted: encounter=%s worker=%s", encounter_id, worker_id)
            return LeaseGranted(lease=HeldLease(owner_id=worker_id, acquired_at=now), previous=lease_of(before))

        current = scope.only("id").first()
        if current is None:
            return LeaseDenied(ErrorCode.NOT_FOUND)

        logger.info("lease denied: encounter=%s worker=%s already claimed", encounter_id, worker_id)
        return LeaseDenied(ErrorCode.ALREADY_CLAIMED)

    @staticmethod
    def release(
        *,
        encounter_id: UUID,
        worker_id: int,
        facility_id: UUID,
        now: Optional[datetime] = None,
    ) -> ReleaseOutcome:
        """
        Tolerant release: the holder, or anyone when no live lease exists.
        Deliberately not filtered on status so a worker can always drop a
        claim it holds.
        """
        now = now or timezone.now()
        scope = LeaseManager._scope(encounter_id=encounter_id, facility_id=facility_id)

        before = scope.only("id", "claimed_by", "claimed_at").first()
        if before is None:
            return LeaseDenied(ErrorCode.NOT_FOUND)

        updated = scope.filter(claimable_q(worker_id, now)).update(
            claimed_by=None,
            claimed_at=None,
            updated_at=now,
        )
        if updated == 1:
            logger.info("lease released: encounter=%s worker=%s", encounter_id, worker_id)
            return LeaseReleased(previous=lease_of(before))

        if not scope.exists():
            return LeaseDenied(ErrorCode.NOT_FOUND)

        logger.info("lease release refused: encounter=%s worker=%s is not the holder", encounter_id, worker_id)
        return LeaseDenied(ErrorCode.FORBIDDEN)
