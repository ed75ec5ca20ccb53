# clinic_core/encounters/models.py
from __future__ import annotations

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from clinic_core.common.models import FacilityScopedModel, SoftDeleteQuerySet
from clinic_core.encounters.constants import EncounterStatus
from clinic_core.patients.models import Patient


class Encounter(FacilityScopedModel):
    """
    One walk-in visit.

    claimed_by/claimed_at form the triage lease. They are only meaningful
    while status is WAIT_TRIAGE; every transition out of WAIT_TRIAGE clears
    them. Status and lease columns are written exclusively through
    conditional updates in the workflow services.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="encounters")

    status = models.CharField(
        max_length=32,
        choices=EncounterStatus.choices,
        default=EncounterStatus.WAIT_TRIAGE,
        db_index=True,
    )

    # FIFO key for both queues
    occurred_at = models.DateTimeField(db_index=True)
    # Facility-local calendar date of occurred_at
    visit_date = models.DateField(db_index=True)

    # Triage lease
    claimed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="claimed_encounters",
        null=True,
        blank=True,
    )
    claimed_at = models.DateTimeField(null=True, blank=True)

    triage_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="triaged_encounters",
        null=True,
        blank=True,
    )
    doctor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="doctor_encounters",
        null=True,
        blank=True,
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_encounters",
        null=True,
        blank=True,
    )

    consult_started_at = models.DateTimeField(null=True, blank=True)
    consult_ended_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True)

    # Clinical payload
    chief_complaint = models.CharField(max_length=500, blank=True, default="")
    triage_notes = models.TextField(blank=True, default="")
    hpi_doctor_notes = models.JSONField(null=True, blank=True)
    physical_exam_data = models.JSONField(null=True, blank=True)
    clinical_impression = models.TextField(blank=True, default="")
    procedures_data = models.JSONField(null=True, blank=True)
    advice_data = models.JSONField(null=True, blank=True)

    objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        db_table = "encounters_encounter"
        indexes = [
            models.Index(fields=["facility_id", "status", "visit_date", "occurred_at"]),
            models.Index(fields=["facility_id", "patient"]),
        ]
        constraints = [
            # One live visit per patient per facility-day.
            models.UniqueConstraint(
                fields=["facility_id", "patient", "visit_date"],
                condition=Q(deleted_at__isnull=True) & ~Q(status=EncounterStatus.CANCELLED),
                name="uq_encounter_patient_visit_day",
            ),
        ]

    def __str__(self) -> str:
        return f"Encounter({self.patient_id}, {self.status})"

    def delete(self, *args, **kwargs):
        raise ValidationError("Encounters are never deleted; set deleted_at instead.")


class TriageRecord(models.Model):
    """
    Vitals and screening captured at triage. Upserted on submission.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    encounter = models.OneToOneField(Encounter, on_delete=models.PROTECT, related_name="triage_record")

    # Vitals, metric
    bp_systolic = models.PositiveSmallIntegerField(null=True, blank=True)
    bp_diastolic = models.PositiveSmallIntegerField(null=True, blank=True)
    heart_rate = models.PositiveSmallIntegerField(null=True, blank=True)
    respiratory_rate = models.PositiveSmallIntegerField(null=True, blank=True)
    temperature_c = models.FloatField(null=True, blank=True)
    spo2 = models.PositiveSmallIntegerField(null=True, blank=True)
    weight_kg = models.FloatField(null=True, blank=True)
    height_cm = models.FloatField(null=True, blank=True)

    # Screening
    symptom_onset = models.CharField(max_length=100, blank=True, default="")
    symptom_duration = models.CharField(max_length=100, blank=True, default="")
    pain_severity = models.PositiveSmallIntegerField(null=True, blank=True)
    associated_symptoms = models.JSONField(default=list, blank=True)
    exposure_flags = models.JSONField(default=list, blank=True)
    exposure_notes = models.CharField(max_length=500, blank=True, default="")

    notes = models.TextField(blank=True, default="")

    recorded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="triage_records",
    )
    recorded_at = models.DateTimeField()

    class Meta:
        db_table = "encounters_triage_record"

    def __str__(self) -> str:
        return f"TriageRecord({self.encounter_id})"
