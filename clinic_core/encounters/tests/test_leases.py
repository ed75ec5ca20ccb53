import pytest

from clinic_core.common.results import ErrorCode
from clinic_core.encounters.leases import (
    HeldLease,
    LeaseDenied,
    LeaseGranted,
    LeaseManager,
    LeaseReleased,
    is_expired,
    lease_of,
    lease_ttl,
)
from clinic_core.encounters.services import EncounterWorkflowService as svc
from clinic_core.tests.helpers import at

pytestmark = pytest.mark.django_db


def test_is_expired_boundary(settings):
    settings.ENCOUNTER_LEASE_TTL_SECONDS = 900
    assert is_expired(None, at(0))
    assert not is_expired(at(0), at(899))
    assert is_expired(at(0), at(900))
    assert lease_ttl().total_seconds() == 900


def test_mutual_exclusion(make_encounter, patient, nurse_a, nurse_b, actor_of):
    enc = make_encounter(patient)

    first = svc.claim_triage(encounter_id=enc.id, actor=actor_of(nurse_a), now=at(1))
    second = svc.claim_triage(encounter_id=enc.id, actor=actor_of(nurse_b), now=at(2))

    assert first.ok
    assert second.code == ErrorCode.ALREADY_CLAIMED
    assert second.error.message == "This patient is already being handled by another worker."

    enc.refresh_from_db()
    assert enc.claimed_by_id == nurse_a.id
    assert enc.claimed_at == at(1)


def test_expired_lease_can_be_taken_over(make_encounter, patient, nurse_a, nurse_b, actor_of):
    enc = make_encounter(patient)
    assert svc.claim_triage(encounter_id=enc.id, actor=actor_of(nurse_a), now=at(0)).ok

    result = svc.claim_triage(encounter_id=enc.id, actor=actor_of(nurse_b), now=at(minutes=15))
    assert result.ok

    enc.refresh_from_db()
    assert enc.claimed_by_id == nurse_b.id
    assert lease_of(enc) == HeldLease(owner_id=nurse_b.id, acquired_at=at(minutes=15))


def test_reclaim_by_holder_renews_without_duplicating(make_encounter, patient, nurse_a, actor_of):
    enc = make_encounter(patient)
    actor = actor_of(nurse_a)

    assert svc.claim_triage(encounter_id=enc.id, actor=actor, now=at(1)).ok
    assert svc.claim_triage(encounter_id=enc.id, actor=actor, now=at(30)).ok

    enc.refresh_from_db()
    assert enc.claimed_by_id == nurse_a.id
    assert enc.claimed_at == at(30)


def test_try_acquire_reports_not_found_outside_wait_triage(make_encounter, patient, nurse_a, facility, other_facility):
    enc = make_encounter(patient)

    wrong_facility = LeaseManager.try_acquire(
        encounter_id=enc.id, worker_id=nurse_a.id, facility_id=other_facility.id, now=at(1)
    )
    assert wrong_facility == LeaseDenied(ErrorCode.NOT_FOUND)

    granted = LeaseManager.try_acquire(encounter_id=enc.id, worker_id=nurse_a.id, facility_id=facility.id, now=at(1))
    assert isinstance(granted, LeaseGranted)
    assert granted.previous is None


def test_release_by_holder_clears_lease(make_encounter, patient, nurse_a, actor_of):
    enc = make_encounter(patient)
    actor = actor_of(nurse_a)
    svc.claim_triage(encounter_id=enc.id, actor=actor, now=at(1))

    assert svc.release_triage(encounter_id=enc.id, actor=actor, now=at(2)).ok

    enc.refresh_from_db()
    assert enc.claimed_by_id is None
    assert enc.claimed_at is None


def test_release_of_someone_elses_live_lease_is_forbidden(make_encounter, patient, nurse_a, nurse_b, actor_of):
    enc = make_encounter(patient)
    svc.claim_triage(encounter_id=enc.id, actor=actor_of(nurse_a), now=at(1))

    result = svc.release_triage(encounter_id=enc.id, actor=actor_of(nurse_b), now=at(2))
    assert result.code == ErrorCode.FORBIDDEN

    enc.refresh_from_db()
    assert enc.claimed_by_id == nurse_a.id


def test_release_is_tolerant_when_no_live_lease(make_encounter, patient, nurse_a, nurse_b, facility):
    enc = make_encounter(patient)
    LeaseManager.try_acquire(encounter_id=enc.id, worker_id=nurse_a.id, facility_id=facility.id, now=at(0))

    outcome = LeaseManager.release(encounter_id=enc.id, worker_id=nurse_b.id, facility_id=facility.id, now=at(minutes=20))
    assert isinstance(outcome, LeaseReleased)
    assert outcome.previous.owner_id == nurse_a.id

    # Nothing held at all
    assert isinstance(
        LeaseManager.release(encounter_id=enc.id, worker_id=nurse_b.id, facility_id=facility.id, now=at(minutes=21)),
        LeaseReleased,
    )


def test_release_unknown_encounter_is_not_found(nurse_a, actor_of):
    result = svc.release_triage(encounter_id="00000000-0000-0000-0000-00000000dead", actor=actor_of(nurse_a))
    assert result.code == ErrorCode.NOT_FOUND


def test_submit_while_someone_else_holds_live_lease_is_not_found(make_encounter, patient, nurse_a, nurse_b, actor_of):
    enc = make_encounter(patient)
    svc.claim_triage(encounter_id=enc.id, actor=actor_of(nurse_a), now=at(1))

    result = svc.submit_triage(encounter_id=enc.id, actor=actor_of(nurse_b), payload={}, now=at(2))
    assert result.code == ErrorCode.NOT_FOUND

    enc.refresh_from_db()
    assert enc.status == "WAIT_TRIAGE"
