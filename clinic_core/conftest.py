# clinic_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from clinic_core.facilities.models import Facility
from clinic_core.iam.actor import resolve_actor
from clinic_core.iam.models import StaffProfile, StaffRole
from clinic_core.patients.models import Patient
from clinic_core.tests.helpers import T0


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def facility(db):
    return Facility.objects.create(code="main", name="Main Health Center", timezone="Asia/Manila")


@pytest.fixture
def other_facility(db):
    return Facility.objects.create(code="other", name="Other Health Center", timezone="Asia/Manila")


@pytest.fixture
def make_staff(db, facility):
    User = get_user_model()

    def _make(username: str, role: str, *, fac=None):
        user = User.objects.create_user(username=username, password="pass12345", first_name=username.title())
        StaffProfile.objects.create(user=user, facility=fac or facility, role=role)
        return user

    return _make


@pytest.fixture
def nurse_a(make_staff):
    return make_staff("nurse_a", StaffRole.TRIAGE)


@pytest.fixture
def nurse_b(make_staff):
    return make_staff("nurse_b", StaffRole.TRIAGE)


@pytest.fixture
def doctor(make_staff):
    return make_staff("doc_d", StaffRole.DOCTOR)


@pytest.fixture
def doctor_b(make_staff):
    return make_staff("doc_e", StaffRole.DOCTOR)


@pytest.fixture
def registrar(make_staff):
    return make_staff("reg_r", StaffRole.REGISTRATION)


@pytest.fixture
def admin_user(make_staff):
    return make_staff("admin_x", StaffRole.ADMIN)


@pytest.fixture
def actor_of():
    return resolve_actor


@pytest.fixture
def make_patient(db, facility):
    counter = {"n": 0}

    def _make(*, fac=None, **extra):
        counter["n"] += 1
        defaults = {
            "first_name": f"Juan{counter['n']}",
            "last_name": "Dela Cruz",
            "patient_code": f"P-{counter['n']:04d}",
        }
        defaults.update(extra)
        return Patient.objects.create(facility_id=(fac or facility).id, **defaults)

    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient()


@pytest.fixture
def make_encounter(registrar):
    """
    Create a WAIT_TRIAGE encounter through the workflow service at a given offset from T0.
    """
    from clinic_core.encounters.services import EncounterWorkflowService

    actor = resolve_actor(registrar)

    def _make(patient, *, now=None):
        result = EncounterWorkflowService.create_encounter(patient_id=patient.id, actor=actor, now=now or T0)
        assert result.ok, result.error
        return result.data["encounter"]

    return _make


@pytest.fixture
def client_for():
    def _client(user):
        c = APIClient()
        c.force_authenticate(user=user)
        return c

    return _client


@pytest.fixture
def consult_encounter(make_encounter, patient, nurse_a, doctor):
    """
    An encounter walked through triage and doctor claim to IN_CONSULT, owned by `doctor`.
    """
    from clinic_core.encounters.services import EncounterWorkflowService as svc
    from clinic_core.tests.helpers import at

    enc = make_encounter(patient)
    nurse = resolve_actor(nurse_a)
    doc = resolve_actor(doctor)
    assert svc.claim_triage(encounter_id=enc.id, actor=nurse, now=at(1)).ok
    assert svc.submit_triage(encounter_id=enc.id, actor=nurse, payload={"chief_complaint": "Cough"}, now=at(2)).ok
    assert svc.claim_doctor_queue_item(encounter_id=enc.id, actor=doc, now=at(3)).ok
    assert svc.start_consultation(encounter_id=enc.id, actor=doc, now=at(4)).ok
    enc.refresh_from_db()
    return enc
