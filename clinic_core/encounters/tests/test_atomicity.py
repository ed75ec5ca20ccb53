import pytest

from clinic_core.audit.models import AuditEntry
from clinic_core.audit.services import AuditService
from clinic_core.clinical.services import ConsultationRecordService
from clinic_core.encounters.constants import EncounterStatus
from clinic_core.encounters.models import TriageRecord
from clinic_core.encounters.services import EncounterWorkflowService as svc
from clinic_core.tests.helpers import at

pytestmark = pytest.mark.django_db


def _boom(**kwargs):
    raise RuntimeError("audit store unavailable")


def test_failed_audit_rolls_back_triage_submission(make_encounter, patient, nurse_a, actor_of, monkeypatch):
    enc = make_encounter(patient)
    a = actor_of(nurse_a)
    svc.claim_triage(encounter_id=enc.id, actor=a, now=at(1))
    audit_count = AuditEntry.objects.count()

    monkeypatch.setattr(AuditService, "record", staticmethod(_boom))
    with pytest.raises(RuntimeError):
        svc.submit_triage(encounter_id=enc.id, actor=a, payload={"heart_rate": 90}, now=at(2))

    enc.refresh_from_db()
    assert enc.status == EncounterStatus.WAIT_TRIAGE
    assert enc.claimed_by_id == nurse_a.id
    assert not TriageRecord.objects.filter(encounter=enc).exists()
    assert AuditEntry.objects.count() == audit_count


def test_failed_audit_rolls_back_claim(make_encounter, patient, nurse_a, actor_of, monkeypatch):
    enc = make_encounter(patient)
    monkeypatch.setattr(AuditService, "record", staticmethod(_boom))

    with pytest.raises(RuntimeError):
        svc.claim_triage(encounter_id=enc.id, actor=actor_of(nurse_a), now=at(1))

    enc.refresh_from_db()
    assert enc.claimed_by_id is None


def test_failed_audit_rolls_back_completion(consult_encounter, doctor, actor_of, monkeypatch):
    d = actor_of(doctor)
    ConsultationRecordService.add_diagnosis(encounter_id=consult_encounter.id, actor=d, payload={"text": "Flu"})

    monkeypatch.setattr(AuditService, "record", staticmethod(_boom))
    with pytest.raises(RuntimeError):
        svc.complete_consultation(encounter_id=consult_encounter.id, actor=d)

    consult_encounter.refresh_from_db()
    assert consult_encounter.status == EncounterStatus.IN_CONSULT
    assert consult_encounter.consult_ended_at is None
