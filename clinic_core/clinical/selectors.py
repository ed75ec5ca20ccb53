# clinic_core/clinical/selectors.py
from __future__ import annotations

from uuid import UUID

from clinic_core.clinical.models import Diagnosis


def count_active_diagnoses(*, encounter_id: UUID) -> int:
    return Diagnosis.objects.alive().filter(encounter_id=encounter_id).count()
