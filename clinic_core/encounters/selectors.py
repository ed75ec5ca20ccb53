# clinic_core/encounters/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import QuerySet

from clinic_core.encounters.models import Encounter


class EncounterSelectors:
    """
    Read-only queries for encounters.
    No .save(), no state mutation here.
    """

    @staticmethod
    def list_encounters(
        *,
        facility_id: UUID,
        patient_id: UUID | None = None,
        status: str | None = None,
        visit_date=None,
    ) -> QuerySet[Encounter]:
        qs = Encounter.objects.alive().filter(facility_id=facility_id).select_related("patient")

        if patient_id:
            qs = qs.filter(patient_id=patient_id)
        if status:
            qs = qs.filter(status=status)
        if visit_date:
            qs = qs.filter(visit_date=visit_date)

        return qs.order_by("-occurred_at", "-id")

    @staticmethod
    def get_encounter(*, facility_id: UUID, encounter_id: UUID) -> Optional[Encounter]:
        return (
            Encounter.objects.alive()
            .filter(facility_id=facility_id, id=encounter_id)
            .select_related("patient")
            .first()
        )
