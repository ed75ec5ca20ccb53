import pytest

from clinic_core.encounters.constants import EncounterStatus
from clinic_core.encounters.services import EncounterWorkflowService
from clinic_core.iam.actor import resolve_actor
from clinic_core.tests.helpers import error_of

pytestmark = pytest.mark.django_db

BASE = "/api/v1"


def _create_today(patient, user):
    result = EncounterWorkflowService.create_encounter(patient_id=patient.id, actor=resolve_actor(user))
    assert result.ok
    return result.data["encounter"]


def test_create_then_reuse(client_for, registrar, patient):
    c = client_for(registrar)

    res = c.post(f"{BASE}/encounters/", {"patient_id": str(patient.id)}, format="json")
    assert res.status_code == 201, res.data
    assert res.data["status"] == EncounterStatus.WAIT_TRIAGE
    assert res.data["reused"] is False

    again = c.post(f"{BASE}/encounters/", {"patient_id": str(patient.id)}, format="json")
    assert again.status_code == 200
    assert again.data["reused"] is True
    assert again.data["id"] == res.data["id"]


def test_claim_conflict_uses_error_envelope(client_for, nurse_a, nurse_b, registrar, patient):
    enc = _create_today(patient, registrar)

    ok = client_for(nurse_a).post(f"{BASE}/encounters/{enc.id}/claim/")
    assert ok.status_code == 200
    assert ok.data["claimed_by_id"] == nurse_a.id

    res = client_for(nurse_b).post(f"{BASE}/encounters/{enc.id}/claim/")
    assert res.status_code == 409
    err = error_of(res)
    assert err["code"] == "already_claimed"
    assert err["message"] == "This patient is already being handled by another worker."
    assert err["request_id"]
    assert res["X-Request-Id"] == err["request_id"]


def test_inbound_request_id_is_echoed(client_for, nurse_a):
    res = client_for(nurse_a).post(
        f"{BASE}/encounters/00000000-0000-0000-0000-000000000000/claim/",
        HTTP_X_REQUEST_ID="trace-123",
    )
    assert res.status_code == 404
    assert error_of(res)["code"] == "not_found"
    assert error_of(res)["request_id"] == "trace-123"


def test_release_by_non_holder_is_403(client_for, nurse_a, nurse_b, registrar, patient):
    enc = _create_today(patient, registrar)
    client_for(nurse_a).post(f"{BASE}/encounters/{enc.id}/claim/")

    res = client_for(nurse_b).post(f"{BASE}/encounters/{enc.id}/release/")
    assert res.status_code == 403
    assert error_of(res)["code"] == "permission_denied"

    mine = client_for(nurse_a).post(f"{BASE}/encounters/{enc.id}/release/")
    assert mine.status_code == 200
    assert mine.data["claimed_by_id"] is None


def test_role_checks(client_for, doctor, nurse_a, registrar, patient, django_user_model):
    enc = _create_today(patient, registrar)

    res = client_for(doctor).post(f"{BASE}/encounters/{enc.id}/claim/")
    assert res.status_code == 403
    assert error_of(res)["code"] == "permission_denied"

    assert client_for(nurse_a).get(f"{BASE}/queues/doctor/").status_code == 403
    assert client_for(doctor).get(f"{BASE}/queues/triage/").status_code == 403

    # Authenticated but not staff
    stranger = django_user_model.objects.create_user(username="visitor", password="pass12345")
    assert client_for(stranger).get(f"{BASE}/encounters/").status_code == 403


def test_admin_passes_every_role_check(client_for, admin_user, registrar, patient):
    enc = _create_today(patient, registrar)
    res = client_for(admin_user).post(f"{BASE}/encounters/{enc.id}/claim/")
    assert res.status_code == 200


def test_triage_queue_endpoint(client_for, nurse_a, registrar, make_patient):
    first = _create_today(make_patient(), registrar)
    _create_today(make_patient(), registrar)

    res = client_for(nurse_a).get(f"{BASE}/queues/triage/")
    assert res.status_code == 200
    assert [row["state"] for row in res.data] == ["AVAILABLE", "DISABLED"]
    assert res.data[0]["encounter"]["id"] == str(first.id)
    assert res.data[0]["position"] == 1
    assert res.data[0]["priority"] == "MEDIUM"


def test_triage_submit_validation_is_400(client_for, nurse_a, registrar, patient):
    enc = _create_today(patient, registrar)
    c = client_for(nurse_a)
    c.post(f"{BASE}/encounters/{enc.id}/claim/")

    res = c.post(f"{BASE}/encounters/{enc.id}/triage/", {"temperature_c": 50}, format="json")
    assert res.status_code == 400
    err = error_of(res)
    assert err["code"] == "validation_error"
    assert "temperature_c" in err["details"]["field_errors"]


def test_full_flow_over_http(client_for, nurse_a, doctor, registrar, patient):
    enc = _create_today(patient, registrar)
    nurse, doc = client_for(nurse_a), client_for(doctor)

    assert nurse.post(f"{BASE}/encounters/{enc.id}/claim/").status_code == 200
    triaged = nurse.post(
        f"{BASE}/encounters/{enc.id}/triage/",
        {"chief_complaint": "Chest pain", "heart_rate": 110},
        format="json",
    )
    assert triaged.status_code == 200
    assert triaged.data["status"] == "TRIAGED"
    assert triaged.data["triage_record_id"]

    queue = doc.get(f"{BASE}/queues/doctor/")
    assert [(r["state"], r["priority"]) for r in queue.data] == [("AVAILABLE", "HIGH")]

    assert doc.post(f"{BASE}/encounters/{enc.id}/doctor-claim/").data["status"] == "WAIT_DOCTOR"
    assert doc.post(f"{BASE}/encounters/{enc.id}/start-consult/").data["status"] == "IN_CONSULT"

    gated = doc.post(f"{BASE}/encounters/{enc.id}/complete-consult/", {"next_status": "FOR_LAB"}, format="json")
    assert gated.status_code == 400
    assert error_of(gated)["message"] == "At least one diagnosis is required to complete consultation"

    dx = doc.post(f"{BASE}/encounters/{enc.id}/diagnoses/", {"text": "Angina", "code": "i20.9"}, format="json")
    assert dx.status_code == 201
    assert dx.data["code"] == "I20.9"

    dup = doc.post(f"{BASE}/encounters/{enc.id}/diagnoses/", {"text": "Angina again", "code": "I20.9"}, format="json")
    assert dup.status_code == 409
    assert error_of(dup)["code"] == "duplicate_code"

    lab = doc.post(
        f"{BASE}/encounters/{enc.id}/lab-orders/",
        {"items": [{"test_name": "ECG"}, {"test_name": "Troponin", "test_code": "TROP"}]},
        format="json",
    )
    assert lab.status_code == 201
    assert len(lab.data["items"]) == 2

    done = doc.post(f"{BASE}/encounters/{enc.id}/complete-consult/", {"next_status": "FOR_LAB"}, format="json")
    assert done.status_code == 200
    assert done.data["status"] == "FOR_LAB"

    timeline = nurse.get(f"{BASE}/encounters/{enc.id}/timeline/")
    assert timeline.status_code == 200
    events = [row["metadata"].get("event") for row in timeline.data]
    assert events[0] == "encounter_created"
    assert "diagnosis_added" in events
    assert events[-1] == "consultation_completed"


def test_in_progress_patient_is_409(client_for, registrar, consult_encounter, patient):
    res = client_for(registrar).post(f"{BASE}/encounters/", {"patient_id": str(patient.id)}, format="json")
    assert res.status_code == 409
    assert error_of(res)["code"] == "encounter_already_in_progress"


def test_list_and_retrieve_are_facility_scoped(client_for, registrar, patient, make_staff, other_facility):
    enc = _create_today(patient, registrar)

    mine = client_for(registrar).get(f"{BASE}/encounters/")
    assert mine.status_code == 200
    assert [row["id"] for row in mine.data["results"]] == [str(enc.id)]

    outsider = make_staff("reg_far", "REGISTRATION", fac=other_facility)
    assert client_for(outsider).get(f"{BASE}/encounters/{enc.id}/").status_code == 404
    assert client_for(outsider).get(f"{BASE}/encounters/").data["results"] == []
