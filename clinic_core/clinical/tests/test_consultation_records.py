import pytest

from clinic_core.clinical.models import Diagnosis, LabOrder, Prescription
from clinic_core.clinical.services import ConsultationRecordService as records
from clinic_core.common.results import ErrorCode
from clinic_core.tests.helpers import error_of

pytestmark = pytest.mark.django_db


def test_add_diagnosis_requires_owned_consultation(consult_encounter, make_encounter, make_patient, doctor, doctor_b, actor_of):
    other_doc = records.add_diagnosis(encounter_id=consult_encounter.id, actor=actor_of(doctor_b), payload={"text": "Flu"})
    assert other_doc.code == ErrorCode.NOT_FOUND

    waiting = make_encounter(make_patient())
    not_in_consult = records.add_diagnosis(encounter_id=waiting.id, actor=actor_of(doctor), payload={"text": "Flu"})
    assert not_in_consult.code == ErrorCode.NOT_FOUND

    ok = records.add_diagnosis(encounter_id=consult_encounter.id, actor=actor_of(doctor), payload={"text": " Flu "})
    assert ok.ok
    assert ok.data["diagnosis"].text == "Flu"
    assert ok.data["diagnosis"].code == ""


def test_duplicate_code_only_among_active_diagnoses(consult_encounter, doctor, actor_of):
    d = actor_of(doctor)
    first = records.add_diagnosis(encounter_id=consult_encounter.id, actor=d, payload={"text": "Dengue", "code": "A90"})
    dup = records.add_diagnosis(encounter_id=consult_encounter.id, actor=d, payload={"text": "Dengue", "code": "a90"})
    assert dup.code == ErrorCode.DUPLICATE_CODE

    # Uncoded diagnoses never collide
    assert records.add_diagnosis(encounter_id=consult_encounter.id, actor=d, payload={"text": "Fatigue"}).ok
    assert records.add_diagnosis(encounter_id=consult_encounter.id, actor=d, payload={"text": "Malaise"}).ok

    assert records.remove_diagnosis(diagnosis_id=first.data["diagnosis"].id, actor=d).ok
    assert records.add_diagnosis(encounter_id=consult_encounter.id, actor=d, payload={"text": "Dengue", "code": "A90"}).ok


def test_remove_diagnosis_is_soft(consult_encounter, doctor, doctor_b, actor_of):
    d = actor_of(doctor)
    dx = records.add_diagnosis(encounter_id=consult_encounter.id, actor=d, payload={"text": "Flu"}).data["diagnosis"]

    assert records.remove_diagnosis(diagnosis_id=dx.id, actor=actor_of(doctor_b)).code == ErrorCode.FORBIDDEN

    assert records.remove_diagnosis(diagnosis_id=dx.id, actor=d).ok
    dx.refresh_from_db()
    assert dx.deleted_at is not None
    assert dx.deleted_by_id == doctor.id
    assert Diagnosis.objects.alive().filter(encounter=consult_encounter).count() == 0

    assert records.remove_diagnosis(diagnosis_id=dx.id, actor=d).code == ErrorCode.NOT_FOUND


def test_diagnosis_is_locked_in_once_consultation_completes(consult_encounter, doctor, actor_of):
    from clinic_core.encounters.services import EncounterWorkflowService

    d = actor_of(doctor)
    dx = records.add_diagnosis(encounter_id=consult_encounter.id, actor=d, payload={"text": "Flu"}).data["diagnosis"]
    assert EncounterWorkflowService.complete_consultation(encounter_id=consult_encounter.id, actor=d).ok

    result = records.remove_diagnosis(diagnosis_id=dx.id, actor=d)

    assert result.code == ErrorCode.FORBIDDEN
    dx.refresh_from_db()
    assert dx.deleted_at is None
    assert Diagnosis.objects.alive().filter(encounter=consult_encounter).count() == 1


def test_prescription_needs_items(consult_encounter, doctor, actor_of):
    d = actor_of(doctor)
    empty = records.add_prescription(encounter_id=consult_encounter.id, actor=d, payload={"items": []})
    assert empty.code == ErrorCode.VALIDATION_ERROR
    assert "items" in empty.error.field_errors

    rx = records.add_prescription(
        encounter_id=consult_encounter.id,
        actor=d,
        payload={
            "notes": "After meals",
            "items": [
                {"medicine_name": "Paracetamol 500mg", "dosage": "1 tab", "frequency": "q6h", "quantity": 12},
                {"medicine_name": "Cetirizine 10mg", "frequency": "OD"},
            ],
        },
    )
    assert rx.ok
    saved = Prescription.objects.get(id=rx.data["prescription"].id)
    assert saved.items.count() == 2
    assert saved.notes == "After meals"


def test_lab_order_starts_pending(consult_encounter, doctor, actor_of):
    result = records.add_lab_order(
        encounter_id=consult_encounter.id,
        actor=actor_of(doctor),
        payload={"items": [{"test_name": "CBC", "test_code": "CBC"}]},
    )
    assert result.ok
    order = LabOrder.objects.get(id=result.data["lab_order"].id)
    assert order.status == "PENDING"
    assert order.items.get().test_name == "CBC"


def test_remove_diagnosis_endpoint(client_for, consult_encounter, doctor, nurse_a, actor_of):
    dx = records.add_diagnosis(
        encounter_id=consult_encounter.id, actor=actor_of(doctor), payload={"text": "Flu"}
    ).data["diagnosis"]

    denied = client_for(nurse_a).delete(f"/api/v1/diagnoses/{dx.id}/")
    assert denied.status_code == 403

    res = client_for(doctor).delete(f"/api/v1/diagnoses/{dx.id}/")
    assert res.status_code == 204

    gone = client_for(doctor).delete(f"/api/v1/diagnoses/{dx.id}/")
    assert gone.status_code == 404
    assert error_of(gone)["code"] == "not_found"
