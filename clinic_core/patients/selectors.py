# clinic_core/patients/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from clinic_core.patients.models import Patient


def get_active_patient(*, facility_id: UUID, patient_id: UUID) -> Optional[Patient]:
    return Patient.objects.alive().filter(facility_id=facility_id, id=patient_id).first()
