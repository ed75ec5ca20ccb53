import pytest
from django.core.exceptions import ValidationError

from clinic_core.audit.models import AuditAction, AuditEntry
from clinic_core.audit.selectors import encounter_timeline, list_audit_entries
from clinic_core.clinical.services import ConsultationRecordService
from clinic_core.encounters.services import EncounterWorkflowService as svc
from clinic_core.tests.helpers import at

pytestmark = pytest.mark.django_db


def test_transitions_are_recorded_with_statuses(make_encounter, patient, nurse_a, actor_of, facility):
    enc = make_encounter(patient, now=at(0))
    a = actor_of(nurse_a)
    svc.claim_triage(encounter_id=enc.id, actor=a, now=at(1))
    svc.submit_triage(encounter_id=enc.id, actor=a, payload={}, now=at(2))

    entries = list(encounter_timeline(facility_id=facility.id, encounter_id=enc.id))
    assert [e.metadata["event"] for e in entries] == ["encounter_created", "triage_claimed", "triage_submitted"]
    assert entries[0].action == AuditAction.CREATE

    submitted = entries[-1]
    assert submitted.action == AuditAction.UPDATE
    assert submitted.metadata["previous_status"] == "WAIT_TRIAGE"
    assert submitted.metadata["new_status"] == "TRIAGED"
    assert submitted.actor_user_id == nurse_a.id
    assert submitted.actor_name
    assert submitted.occurred_at == at(2)


def test_reuse_is_audited_with_rule(make_encounter, patient, facility):
    enc = make_encounter(patient, now=at(0))
    make_encounter(patient, now=at(60))

    last = encounter_timeline(facility_id=facility.id, encounter_id=enc.id).last()
    assert last.metadata["rule"] == "REUSE_WAIT_TRIAGE"


def test_soft_delete_of_diagnosis_is_on_encounter_timeline(consult_encounter, doctor, actor_of, facility):
    d = actor_of(doctor)
    dx = ConsultationRecordService.add_diagnosis(
        encounter_id=consult_encounter.id, actor=d, payload={"text": "Flu"}
    ).data["diagnosis"]
    ConsultationRecordService.remove_diagnosis(diagnosis_id=dx.id, actor=d)

    removed = list_audit_entries(facility_id=facility.id, entity_type="diagnosis", action=AuditAction.DELETE_SOFT)
    assert [e.entity_id for e in removed] == [dx.id]
    assert removed[0].encounter_id == consult_encounter.id


def test_audit_entries_are_immutable(make_encounter, patient):
    make_encounter(patient)
    entry = AuditEntry.objects.first()

    entry.metadata = {"tampered": True}
    with pytest.raises(ValidationError):
        entry.save()
    with pytest.raises(ValidationError):
        entry.delete()


def test_audit_endpoint_is_admin_only(client_for, admin_user, registrar, make_encounter, patient):
    make_encounter(patient)

    assert client_for(registrar).get("/api/v1/audit/entries/").status_code == 403

    res = client_for(admin_user).get("/api/v1/audit/entries/", {"entity_type": "encounter"})
    assert res.status_code == 200
    assert res.data["count"] == 1
    assert res.data["results"][0]["action"] == "CREATE"

    bad = client_for(admin_user).get("/api/v1/audit/entries/", {"entity_id": "nope"})
    assert bad.status_code == 400
