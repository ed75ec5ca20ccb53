# clinic_core/clinical/services.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone

from clinic_core.audit.models import AuditAction
from clinic_core.audit.services import AuditService
from clinic_core.clinical.models import Diagnosis, LabOrder, LabOrderItem, Prescription, PrescriptionItem
from clinic_core.clinical.serializers import (
    DiagnosisInputSerializer,
    LabOrderInputSerializer,
    PrescriptionInputSerializer,
)
from clinic_core.common.ids import as_uuid
from clinic_core.common.results import ActionResult, ErrorCode, not_found, plain_errors, validation_error
from clinic_core.encounters.constants import EncounterStatus
from clinic_core.encounters.models import Encounter
from clinic_core.iam.actor import Actor

logger = logging.getLogger(__name__)


def _owned_consult(*, encounter_id, actor: Actor) -> Optional[Encounter]:
    """
    The doctor's own IN_CONSULT encounter, row-locked so inserts serialize
    with the completion gate.
    """
    eid = as_uuid(encounter_id)
    if eid is None:
        return None
    return (
        Encounter.objects.alive()
        .select_for_update()
        .filter(
            id=eid,
            facility_id=actor.facility_id,
            status=EncounterStatus.IN_CONSULT,
            doctor_id=actor.user_id,
        )
        .first()
    )


class ConsultationRecordService:
    """
    Records a doctor attaches to an encounter during consultation.
    """

    @staticmethod
    @transaction.atomic
    def add_diagnosis(
        *,
        encounter_id,
        actor: Actor,
        payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> ActionResult:
        now = now or timezone.now()
        ser = DiagnosisInputSerializer(data=payload or {})
        if not ser.is_valid():
            return validation_error("Invalid diagnosis", plain_errors(ser.errors))
        data = ser.validated_data

        enc = _owned_consult(encounter_id=encounter_id, actor=actor)
        if enc is None:
            return not_found()

        code = data.get("code") or ""
        try:
            with transaction.atomic():
                dx = Diagnosis.objects.create(
                    facility_id=actor.facility_id,
                    encounter=enc,
                    text=data["text"].strip(),
                    code=code,
                    created_by_id=actor.user_id,
                )
        except IntegrityError:
            return ActionResult.failure(
                ErrorCode.DUPLICATE_CODE,
                f"Diagnosis {code} is already recorded for this encounter.",
            )

        AuditService.record(
            actor=actor,
            action=AuditAction.CREATE,
            entity_type="diagnosis",
            entity_id=dx.id,
            encounter_id=enc.id,
            metadata={"event": "diagnosis_added", "code": code, "text": dx.text},
            occurred_at=now,
        )
        return ActionResult.success({"diagnosis": dx})

    @staticmethod
    @transaction.atomic
    def remove_diagnosis(*, diagnosis_id, actor: Actor, now: Optional[datetime] = None) -> ActionResult:
        now = now or timezone.now()
        did = as_uuid(diagnosis_id)
        dx = Diagnosis.objects.alive().filter(id=did, facility_id=actor.facility_id).first() if did else None
        if dx is None:
            return not_found("Diagnosis not found")

        # Same row lock as complete_consultation, so the gate's count and this delete cannot interleave.
        enc = (
            Encounter.objects.alive()
            .select_for_update()
            .filter(id=dx.encounter_id, status=EncounterStatus.IN_CONSULT, doctor_id=actor.user_id)
            .first()
        )
        if enc is None:
            return ActionResult.failure(
                ErrorCode.FORBIDDEN,
                "Only the consulting doctor can remove a diagnosis during consultation.",
            )

        updated = Diagnosis.objects.alive().filter(id=dx.id).update(
            deleted_at=now,
            deleted_by_id=actor.user_id,
            updated_at=now,
        )
        if updated != 1:
            return not_found("Diagnosis not found")

        AuditService.record(
            actor=actor,
            action=AuditAction.DELETE_SOFT,
            entity_type="diagnosis",
            entity_id=dx.id,
            encounter_id=enc.id,
            metadata={"event": "diagnosis_removed", "code": dx.code, "text": dx.text},
            occurred_at=now,
        )
        return ActionResult.success({"diagnosis_id": dx.id})

    @staticmethod
    @transaction.atomic
    def add_prescription(
        *,
        encounter_id,
        actor: Actor,
        payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> ActionResult:
        now = now or timezone.now()
        ser = PrescriptionInputSerializer(data=payload or {})
        if not ser.is_valid():
            return validation_error("Invalid prescription", plain_errors(ser.errors))
        data = ser.validated_data

        enc = _owned_consult(encounter_id=encounter_id, actor=actor)
        if enc is None:
            return not_found()

        rx = Prescription.objects.create(
            facility_id=actor.facility_id,
            encounter=enc,
            notes=data.get("notes") or "",
            created_by_id=actor.user_id,
        )
        PrescriptionItem.objects.bulk_create(
            [
                PrescriptionItem(
                    prescription=rx,
                    medicine_name=item["medicine_name"],
                    dosage=item.get("dosage") or "",
                    frequency=item.get("frequency") or "",
                    duration=item.get("duration") or "",
                    quantity=item.get("quantity"),
                    instructions=item.get("instructions") or "",
                )
                for item in data["items"]
            ]
        )

        AuditService.record(
            actor=actor,
            action=AuditAction.CREATE,
            entity_type="prescription",
            entity_id=rx.id,
            encounter_id=enc.id,
            metadata={"event": "prescription_added", "item_count": len(data["items"])},
            occurred_at=now,
        )
        return ActionResult.success({"prescription": rx})

    @staticmethod
    @transaction.atomic
    def add_lab_order(
        *,
        encounter_id,
        actor: Actor,
        payload: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> ActionResult:
        now = now or timezone.now()
        ser = LabOrderInputSerializer(data=payload or {})
        if not ser.is_valid():
            return validation_error("Invalid lab order", plain_errors(ser.errors))
        data = ser.validated_data

        enc = _owned_consult(encounter_id=encounter_id, actor=actor)
        if enc is None:
            return not_found()

        order = LabOrder.objects.create(
            facility_id=actor.facility_id,
            encounter=enc,
            requested_by_id=actor.user_id,
        )
        LabOrderItem.objects.bulk_create(
            [
                LabOrderItem(
                    lab_order=order,
                    test_code=item.get("test_code") or "",
                    test_name=item["test_name"],
                    notes=item.get("notes") or "",
                )
                for item in data["items"]
            ]
        )

        AuditService.record(
            actor=actor,
            action=AuditAction.CREATE,
            entity_type="lab_order",
            entity_id=order.id,
            encounter_id=enc.id,
            metadata={
                "event": "lab_order_added",
                "tests": [item["test_name"] for item in data["items"]],
            },
            occurred_at=now,
        )
        return ActionResult.success({"lab_order": order})
