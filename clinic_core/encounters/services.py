# clinic_core/encounters/services.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from clinic_core.audit.models import AuditAction
from clinic_core.audit.services import AuditService
from clinic_core.clinical.selectors import count_active_diagnoses
from clinic_core.common.ids import as_uuid
from clinic_core.common.results import (
    ActionResult,
    ErrorCode,
    not_found,
    plain_errors,
    validation_error,
)
from clinic_core.encounters.constants import (
    COMPLETION_TARGETS,
    ENTITY_ENCOUNTER,
    IN_PROGRESS_STATUSES,
    TERMINAL_STATUSES,
    EncounterStatus,
)
from clinic_core.encounters import state_machine
from clinic_core.encounters.leases import LeaseDenied, LeaseManager, claimable_q, live_lease
from clinic_core.encounters.models import Encounter, TriageRecord
from clinic_core.encounters.queues import QueueEntry, QueueKind, QueuePolicy, list_queue, visible_queue
from clinic_core.encounters.serializers import ConsultationNotesSerializer, TriageSubmitSerializer
from clinic_core.encounters.state_machine import WorkflowAction, expected_status, is_terminal, next_status
from clinic_core.facilities.selectors import facility_today
from clinic_core.iam.actor import Actor, lock_actor
from clinic_core.patients.selectors import get_active_patient

logger = logging.getLogger(__name__)

ALREADY_CLAIMED_MESSAGE = "This patient is already being handled by another worker."
NOT_HOLDER_MESSAGE = "You do not hold the claim on this patient."

_DENIAL_MESSAGES = {
    ErrorCode.ALREADY_CLAIMED: ALREADY_CLAIMED_MESSAGE,
    ErrorCode.FORBIDDEN: NOT_HOLDER_MESSAGE,
}


def _denied(outcome: LeaseDenied) -> ActionResult:
    if outcome.reason == ErrorCode.NOT_FOUND:
        return not_found()
    return ActionResult.failure(outcome.reason, _DENIAL_MESSAGES.get(outcome.reason, "Request denied"))


def _transition_metadata(event: str, previous: Optional[str], new: Optional[str], **extra) -> Dict[str, Any]:
    meta: Dict[str, Any] = {"event": event, "previous_status": previous, "new_status": new}
    meta.update(extra)
    return meta


def _text(value: Optional[str]) -> str:
    return value or ""


class EncounterWorkflowService:
    """
    Every operation takes an explicit Actor, runs in one transaction and
    returns an ActionResult. Status and lease columns change only through the
    conditional updates below; the audit write shares the transaction, so a
    failed audit leaves the encounter untouched.
    """

    # ---------------------------------------------------------------------
    # Intake
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def create_encounter(*, patient_id, actor: Actor, now: Optional[datetime] = None) -> ActionResult:
        now = now or timezone.now()
        pid = as_uuid(patient_id)
        patient = get_active_patient(facility_id=actor.facility_id, patient_id=pid) if pid else None
        if patient is None:
            return not_found("Patient not found")

        today = facility_today(actor.facility_id, now)

        open_encounters = (
            Encounter.objects.alive()
            .select_for_update()
            .filter(facility_id=actor.facility_id, patient=patient)
            .exclude(status__in=TERMINAL_STATUSES)
            .order_by("-occurred_at")
        )
        existing = list(open_encounters)

        for enc in existing:
            if enc.status in IN_PROGRESS_STATUSES:
                return ActionResult.failure(
                    ErrorCode.ENCOUNTER_ALREADY_IN_PROGRESS,
                    "Patient already has an active encounter. Complete or cancel it first.",
                )

        waiting = next((e for e in existing if e.status == EncounterStatus.WAIT_TRIAGE), None)
        if waiting is not None:
            return EncounterWorkflowService._reuse_waiting(waiting, actor=actor, now=now, today=today)

        # A patient sent to the lab comes back with results: reopen that visit instead of starting a new one.
        lab_visit = (
            Encounter.objects.alive()
            .select_for_update()
            .filter(facility_id=actor.facility_id, patient=patient, status=EncounterStatus.FOR_LAB)
            .order_by("-occurred_at")
            .first()
        )
        if lab_visit is not None:
            return EncounterWorkflowService._reopen_lab_followup(lab_visit, actor=actor, now=now, today=today)

        target = next_status(None, WorkflowAction.CREATE)
        try:
            with transaction.atomic():
                enc = Encounter.objects.create(
                    facility_id=actor.facility_id,
                    patient=patient,
                    status=target,
                    occurred_at=now,
                    visit_date=today,
                    created_by_id=actor.user_id,
                )
        except IntegrityError:
            # Lost a race (or the patient already had a visit today).
            winner = (
                Encounter.objects.alive()
                .filter(
                    facility_id=actor.facility_id,
                    patient=patient,
                    visit_date=today,
                    status=EncounterStatus.WAIT_TRIAGE,
                )
                .first()
            )
            if winner is not None:
                return ActionResult.success({"encounter": winner, "reused": True})
            logger.info("duplicate encounter refused: patient=%s day=%s", patient.id, today)
            return ActionResult.failure(
                ErrorCode.DUPLICATE_ENCOUNTER,
                "Patient already has an encounter for today.",
            )

        AuditService.record(
            actor=actor,
            action=AuditAction.CREATE,
            entity_type=ENTITY_ENCOUNTER,
            entity_id=enc.id,
            metadata=_transition_metadata(
                "encounter_created", None, target, patient_id=str(patient.id), visit_date=today.isoformat()
            ),
            occurred_at=now,
        )
        logger.info("encounter created: encounter=%s patient=%s", enc.id, patient.id)
        return ActionResult.success({"encounter": enc, "reused": False})

    @staticmethod
    def _reuse_waiting(enc: Encounter, *, actor: Actor, now: datetime, today) -> ActionResult:
        previous_occurred_at = enc.occurred_at
        try:
            with transaction.atomic():
                updated = Encounter.objects.filter(id=enc.id, status=EncounterStatus.WAIT_TRIAGE).update(
                    occurred_at=now,
                    visit_date=today,
                    updated_at=now,
                )
        except IntegrityError:
            return ActionResult.failure(
                ErrorCode.DUPLICATE_ENCOUNTER,
                "Patient already has an encounter for today.",
            )
        if updated != 1:
            return not_found()

        AuditService.record(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_ENCOUNTER,
            entity_id=enc.id,
            metadata=_transition_metadata(
                "encounter_rescheduled",
                EncounterStatus.WAIT_TRIAGE,
                EncounterStatus.WAIT_TRIAGE,
                rule="REUSE_WAIT_TRIAGE",
                previous_occurred_at=previous_occurred_at.isoformat(),
            ),
            occurred_at=now,
        )
        enc.refresh_from_db()
        logger.info("encounter reused: encounter=%s", enc.id)
        return ActionResult.success({"encounter": enc, "reused": True})

    @staticmethod
    def _reopen_lab_followup(enc: Encounter, *, actor: Actor, now: datetime, today) -> ActionResult:
        """
        FOR_LAB -> TRIAGED, skipping triage vitals. The doctor is cleared so the
        visit re-enters today's doctor queue as AVAILABLE.
        """
        source = expected_status(WorkflowAction.FOLLOW_UP)
        target = next_status(source, WorkflowAction.FOLLOW_UP)
        previous_doctor_id = enc.doctor_id
        previous_occurred_at = enc.occurred_at
        try:
            with transaction.atomic():
                updated = Encounter.objects.filter(id=enc.id, status=source).update(
                    status=target,
                    doctor=None,
                    consult_ended_at=None,
                    occurred_at=now,
                    visit_date=today,
                    updated_at=now,
                )
        except IntegrityError:
            return ActionResult.failure(
                ErrorCode.DUPLICATE_ENCOUNTER,
                "Patient already has an encounter for today.",
            )
        if updated != 1:
            return not_found()

        AuditService.record(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_ENCOUNTER,
            entity_id=enc.id,
            metadata=_transition_metadata(
                "lab_followup_reopened",
                source,
                target,
                rule="FOR_LAB_FOLLOWUP",
                previous_doctor_id=previous_doctor_id,
                previous_occurred_at=previous_occurred_at.isoformat(),
            ),
            occurred_at=now,
        )
        enc.refresh_from_db()
        logger.info("lab follow-up reopened: encounter=%s", enc.id)
        return ActionResult.success({"encounter": enc, "reused": True})

    # ---------------------------------------------------------------------
    # Triage
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def claim_triage(*, encounter_id, actor: Actor, now: Optional[datetime] = None) -> ActionResult:
        now = now or timezone.now()
        # Everything below reads committed state only after this worker's other claims have finished.
        lock_actor(actor)
        eid = as_uuid(encounter_id)
        enc = (
            Encounter.objects.alive().filter(id=eid, facility_id=actor.facility_id).first() if eid else None
        )
        if enc is None or enc.status != EncounterStatus.WAIT_TRIAGE:
            logger.debug("claim_triage: encounter %s missing or not waiting for triage", encounter_id)
            return not_found()

        lease = live_lease(enc, now)
        if lease is not None and lease.owner_id != actor.user_id:
            logger.info("claim_triage denied: encounter=%s held by user=%s", eid, lease.owner_id)
            return ActionResult.failure(ErrorCode.ALREADY_CLAIMED, ALREADY_CLAIMED_MESSAGE)

        today = facility_today(actor.facility_id, now)
        queue = visible_queue(facility_id=actor.facility_id, kind=QueueKind.TRIAGE, day=today)
        if not QueuePolicy.claimable_by(queue=queue, encounter_id=eid, worker_id=actor.user_id, now=now):
            logger.debug("claim_triage: encounter %s is not claimable by user=%s (queue order)", eid, actor.user_id)
            return not_found()

        outcome = LeaseManager.try_acquire(
            encounter_id=eid,
            worker_id=actor.user_id,
            facility_id=actor.facility_id,
            now=now,
        )
        if isinstance(outcome, LeaseDenied):
            return _denied(outcome)

        previous = outcome.previous
        AuditService.record(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_ENCOUNTER,
            entity_id=eid,
            metadata=_transition_metadata(
                "triage_claimed",
                EncounterStatus.WAIT_TRIAGE,
                EncounterStatus.WAIT_TRIAGE,
                renewed=bool(previous and previous.owner_id == actor.user_id),
                previous_claimed_by=previous.owner_id if previous else None,
            ),
            occurred_at=now,
        )
        return ActionResult.success({"encounter_id": eid, "claimed_at": now})

    @staticmethod
    @transaction.atomic
    def release_triage(*, encounter_id, actor: Actor, now: Optional[datetime] = None) -> ActionResult:
        now = now or timezone.now()
        eid = as_uuid(encounter_id)
        if eid is None:
            return not_found()

        outcome = LeaseManager.release(
            encounter_id=eid,
            worker_id=actor.user_id,
            facility_id=actor.facility_id,
            now=now,
        )
        if isinstance(outcome, LeaseDenied):
            return _denied(outcome)

        previous = outcome.previous
        AuditService.record(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_ENCOUNTER,
            entity_id=eid,
            metadata={
                "event": "triage_released",
                "previous_claimed_by": previous.owner_id if previous else None,
            },
            occurred_at=now,
        )
        return ActionResult.success({"encounter_id": eid})

    @staticmethod
    @transaction.atomic
    def submit_triage(
        *,
        encounter_id,
        actor: Actor,
        payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> ActionResult:
        now = now or timezone.now()
        ser = TriageSubmitSerializer(data=payload or {})
        if not ser.is_valid():
            return validation_error("Invalid triage data", plain_errors(ser.errors))
        data = ser.validated_data

        eid = as_uuid(encounter_id)
        if eid is None:
            return not_found()

        source = expected_status(WorkflowAction.SUBMIT_TRIAGE)
        target = next_status(source, WorkflowAction.SUBMIT_TRIAGE)

        changes: Dict[str, Any] = {
            "status": target,
            "claimed_by": None,
            "claimed_at": None,
            "triage_by_id": actor.user_id,
            "updated_at": now,
        }
        if "chief_complaint" in data:
            changes["chief_complaint"] = _text(data["chief_complaint"])
        if "triage_notes" in data:
            changes["triage_notes"] = _text(data["triage_notes"])

        updated = (
            Encounter.objects.alive()
            .filter(id=eid, facility_id=actor.facility_id, status=source)
            .filter(claimable_q(actor.user_id, now))
            .update(**changes)
        )
        if updated != 1:
            logger.debug("submit_triage: encounter %s not submittable by user=%s", eid, actor.user_id)
            return not_found()

        record, created = TriageRecord.objects.update_or_create(
            encounter_id=eid,
            defaults={
                "bp_systolic": data.get("bp_systolic"),
                "bp_diastolic": data.get("bp_diastolic"),
                "heart_rate": data.get("heart_rate"),
                "respiratory_rate": data.get("respiratory_rate"),
                "temperature_c": data.get("temperature_c"),
                "spo2": data.get("spo2"),
                "weight_kg": data.get("weight_kg"),
                "height_cm": data.get("height_cm"),
                "symptom_onset": _text(data.get("symptom_onset")),
                "symptom_duration": _text(data.get("symptom_duration")),
                "pain_severity": data.get("pain_severity"),
                "associated_symptoms": list(data.get("associated_symptoms") or []),
                "exposure_flags": list(data.get("exposure_flags") or []),
                "exposure_notes": _text(data.get("exposure_notes")),
                "notes": _text(data.get("triage_notes")),
                "recorded_by_id": actor.user_id,
                "recorded_at": now,
            },
        )

        AuditService.record(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_ENCOUNTER,
            entity_id=eid,
            metadata=_transition_metadata(
                "triage_submitted",
                source,
                target,
                triage_record_id=str(record.id),
                triage_record_created=created,
            ),
            occurred_at=now,
        )
        logger.info("triage submitted: encounter=%s by user=%s", eid, actor.user_id)
        return ActionResult.success({"triage_record_id": record.id})

    # ---------------------------------------------------------------------
    # Doctor
    # ---------------------------------------------------------------------
    @staticmethod
    def _doctor_transition(
        *,
        encounter_id,
        actor: Actor,
        action: str,
        event: str,
        now: datetime,
        require_owner: bool,
        extra_changes: Optional[Dict[str, Any]] = None,
    ) -> ActionResult:
        eid = as_uuid(encounter_id)
        if eid is None:
            return not_found()

        source = expected_status(action)
        target = next_status(source, action)

        qs = Encounter.objects.alive().filter(id=eid, facility_id=actor.facility_id, status=source)
        if require_owner:
            qs = qs.filter(doctor_id=actor.user_id)
        else:
            qs = qs.filter(doctor__isnull=True)

        changes: Dict[str, Any] = {"status": target, "updated_at": now}
        changes.update(extra_changes or {})

        if qs.update(**changes) != 1:
            logger.debug("%s: encounter %s not in %s for user=%s", event, eid, source, actor.user_id)
            return not_found()

        AuditService.record(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_ENCOUNTER,
            entity_id=eid,
            metadata=_transition_metadata(event, source, target),
            occurred_at=now,
        )
        logger.info("%s: encounter=%s doctor=%s", event, eid, actor.user_id)
        return ActionResult.success({"encounter_id": eid, "status": target})

    @staticmethod
    @transaction.atomic
    def claim_doctor_queue_item(*, encounter_id, actor: Actor, now: Optional[datetime] = None) -> ActionResult:
        now = now or timezone.now()
        return EncounterWorkflowService._doctor_transition(
            encounter_id=encounter_id,
            actor=actor,
            action=WorkflowAction.CLAIM_FOR_DOCTOR,
            event="doctor_claimed",
            now=now,
            require_owner=False,
            extra_changes={"doctor_id": actor.user_id},
        )

    @staticmethod
    @transaction.atomic
    def start_consultation(*, encounter_id, actor: Actor, now: Optional[datetime] = None) -> ActionResult:
        now = now or timezone.now()
        return EncounterWorkflowService._doctor_transition(
            encounter_id=encounter_id,
            actor=actor,
            action=WorkflowAction.START_CONSULT,
            event="consultation_started",
            now=now,
            require_owner=True,
            extra_changes={"consult_started_at": now},
        )

    @staticmethod
    @transaction.atomic
    def save_consultation(
        *,
        encounter_id,
        actor: Actor,
        payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> ActionResult:
        now = now or timezone.now()
        ser = ConsultationNotesSerializer(data=payload or {})
        if not ser.is_valid():
            return validation_error("Invalid consultation data", plain_errors(ser.errors))
        data = ser.validated_data

        eid = as_uuid(encounter_id)
        if eid is None:
            return not_found()

        changes: Dict[str, Any] = {"updated_at": now}
        for key in ("hpi_doctor_notes", "physical_exam_data", "procedures_data", "advice_data"):
            if key in data:
                changes[key] = data[key]
        if "clinical_impression" in data:
            changes["clinical_impression"] = _text(data["clinical_impression"])

        updated = (
            Encounter.objects.alive()
            .filter(id=eid, facility_id=actor.facility_id, status=EncounterStatus.IN_CONSULT, doctor_id=actor.user_id)
            .update(**changes)
        )
        if updated != 1:
            return not_found()

        AuditService.record(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_ENCOUNTER,
            entity_id=eid,
            metadata={"event": "consultation_saved", "fields": sorted(k for k in changes if k != "updated_at")},
            occurred_at=now,
        )
        return ActionResult.success({"encounter_id": eid})

    @staticmethod
    @transaction.atomic
    def complete_consultation(
        *,
        encounter_id,
        actor: Actor,
        next_status: str = EncounterStatus.DONE,
        now: Optional[datetime] = None,
    ) -> ActionResult:
        now = now or timezone.now()
        target_status = next_status or EncounterStatus.DONE
        if target_status not in COMPLETION_TARGETS:
            return validation_error(
                "Invalid next status",
                {"next_status": [f"Must be one of: {', '.join(sorted(COMPLETION_TARGETS))}."]},
            )

        eid = as_uuid(encounter_id)
        if eid is None:
            return not_found()

        source = expected_status(WorkflowAction.COMPLETE_CONSULT)

        # Lock first so the diagnosis count and the status write see the same encounter.
        enc = (
            Encounter.objects.alive()
            .select_for_update()
            .filter(id=eid, facility_id=actor.facility_id, status=source, doctor_id=actor.user_id)
            .first()
        )
        if enc is None:
            return not_found()

        if count_active_diagnoses(encounter_id=eid) == 0:
            return validation_error("At least one diagnosis is required to complete consultation")

        target = state_machine.next_status(source, WorkflowAction.COMPLETE_CONSULT, target_status)
        updated = (
            Encounter.objects.filter(id=eid, status=source, doctor_id=actor.user_id)
            .update(status=target, consult_ended_at=now, updated_at=now)
        )
        if updated != 1:
            return not_found()

        AuditService.record(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_ENCOUNTER,
            entity_id=eid,
            metadata=_transition_metadata("consultation_completed", source, target),
            occurred_at=now,
        )
        logger.info("consultation completed: encounter=%s -> %s", eid, target)
        return ActionResult.success({"encounter_id": eid, "status": target})

    # ---------------------------------------------------------------------
    # Cancellation
    # ---------------------------------------------------------------------
    @staticmethod
    @transaction.atomic
    def cancel_encounter(
        *,
        encounter_id,
        actor: Actor,
        reason: str = "",
        now: Optional[datetime] = None,
    ) -> ActionResult:
        now = now or timezone.now()
        eid = as_uuid(encounter_id)
        enc = (
            Encounter.objects.alive().select_for_update().filter(id=eid, facility_id=actor.facility_id).first()
            if eid
            else None
        )
        if enc is None or is_terminal(enc.status):
            return not_found()

        source = enc.status
        target = next_status(source, WorkflowAction.CANCEL)
        updated = Encounter.objects.filter(id=eid, status=source).update(
            status=target,
            cancelled_at=now,
            claimed_by=None,
            claimed_at=None,
            updated_at=now,
        )
        if updated != 1:
            return not_found()

        AuditService.record(
            actor=actor,
            action=AuditAction.UPDATE,
            entity_type=ENTITY_ENCOUNTER,
            entity_id=eid,
            metadata=_transition_metadata("encounter_cancelled", source, target, reason=reason or ""),
            occurred_at=now,
        )
        logger.info("encounter cancelled: encounter=%s from %s", eid, source)
        return ActionResult.success({"encounter_id": eid, "status": target})

    # ---------------------------------------------------------------------
    # Queues
    # ---------------------------------------------------------------------
    @staticmethod
    def list_queue(
        *,
        actor: Actor,
        kind: str,
        day=None,
        now: Optional[datetime] = None,
    ) -> List[QueueEntry]:
        return list_queue(actor=actor, kind=kind, day=day, now=now)
