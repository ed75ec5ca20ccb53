# clinic_core/encounters/api/views.py
from __future__ import annotations

from datetime import date
from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.response import Response

from clinic_core.audit.api.serializers import AuditEntrySerializer
from clinic_core.audit.selectors import encounter_timeline
from clinic_core.clinical.serializers import (
    DiagnosisInputSerializer,
    DiagnosisSerializer,
    LabOrderInputSerializer,
    LabOrderSerializer,
    PrescriptionInputSerializer,
    PrescriptionSerializer,
)
from clinic_core.clinical.services import ConsultationRecordService
from clinic_core.common.api.exceptions import raise_for_result
from clinic_core.common.api.pagination import paginate
from clinic_core.common.permissions import EncounterPermission, QueuePermission
from clinic_core.encounters.constants import EncounterStatus
from clinic_core.encounters.models import Encounter
from clinic_core.encounters.queues import QueueKind
from clinic_core.encounters.selectors import EncounterSelectors
from clinic_core.encounters.serializers import (
    CancelEncounterSerializer,
    CompleteConsultationSerializer,
    ConsultationNotesSerializer,
    EncounterCreateSerializer,
    EncounterSerializer,
    QueueEntrySerializer,
    TriageSubmitSerializer,
)
from clinic_core.encounters.services import EncounterWorkflowService

UUID_REGEX = r"[0-9a-fA-F-]{32,36}"


def _optional_uuid(raw, field: str) -> UUID | None:
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError({field: ["Invalid UUID."]})


def _optional_date(raw, field: str) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(str(raw))
    except ValueError:
        raise ValidationError({field: ["Invalid date, expected YYYY-MM-DD."]})


class EncounterViewSet(viewsets.ViewSet):
    permission_classes = [EncounterPermission]
    serializer_class = EncounterSerializer
    queryset = Encounter.objects.none()
    lookup_value_regex = UUID_REGEX

    def get_object(self, request, pk) -> Encounter:
        enc = EncounterSelectors.get_encounter(
            facility_id=request.actor.facility_id,
            encounter_id=_optional_uuid(pk, "id"),
        )
        if enc is None:
            raise NotFound("Encounter not found.")
        return enc

    def _reload(self, request, pk) -> Response:
        return Response(EncounterSerializer(self.get_object(request, pk)).data, status=status.HTTP_200_OK)

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------
    @extend_schema(
        tags=["Encounters"],
        parameters=[
            OpenApiParameter(name="patient_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="visit_date", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False),
        ],
        responses={200: EncounterSerializer(many=True)},
    )
    def list(self, request):
        status_q = request.query_params.get("status") or None
        if status_q and status_q not in EncounterStatus.values:
            raise ValidationError({"status": [f"Unknown status {status_q}."]})

        qs = EncounterSelectors.list_encounters(
            facility_id=request.actor.facility_id,
            patient_id=_optional_uuid(request.query_params.get("patient_id"), "patient_id"),
            status=status_q,
            visit_date=_optional_date(request.query_params.get("visit_date"), "visit_date"),
        )
        return paginate(request, qs, EncounterSerializer)

    @extend_schema(tags=["Encounters"], responses={200: EncounterSerializer})
    def retrieve(self, request, pk=None):
        return self._reload(request, pk)

    @extend_schema(tags=["Encounters"], responses={200: AuditEntrySerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="timeline")
    def timeline(self, request, pk=None):
        enc = self.get_object(request, pk)
        qs = encounter_timeline(facility_id=request.actor.facility_id, encounter_id=enc.id)
        return Response(AuditEntrySerializer(qs, many=True).data, status=status.HTTP_200_OK)

    # ------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------
    @extend_schema(tags=["Encounters"], request=EncounterCreateSerializer, responses={201: EncounterSerializer})
    def create(self, request):
        ser = EncounterCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        result = EncounterWorkflowService.create_encounter(
            patient_id=ser.validated_data["patient_id"],
            actor=request.actor,
        )
        raise_for_result(result)

        data = dict(EncounterSerializer(result.data["encounter"]).data)
        data["reused"] = result.data["reused"]
        code = status.HTTP_200_OK if result.data["reused"] else status.HTTP_201_CREATED
        return Response(data, status=code)

    # ------------------------------------------------------------
    # Triage
    # ------------------------------------------------------------
    @extend_schema(tags=["Triage"], request=None, responses={200: EncounterSerializer})
    @action(detail=True, methods=["post"], url_path="claim")
    def claim(self, request, pk=None):
        raise_for_result(EncounterWorkflowService.claim_triage(encounter_id=pk, actor=request.actor))
        return self._reload(request, pk)

    @extend_schema(tags=["Triage"], request=None, responses={200: EncounterSerializer})
    @action(detail=True, methods=["post"], url_path="release")
    def release(self, request, pk=None):
        raise_for_result(EncounterWorkflowService.release_triage(encounter_id=pk, actor=request.actor))
        return self._reload(request, pk)

    @extend_schema(tags=["Triage"], request=TriageSubmitSerializer, responses={200: EncounterSerializer})
    @action(detail=True, methods=["post"], url_path="triage")
    def triage(self, request, pk=None):
        result = EncounterWorkflowService.submit_triage(encounter_id=pk, actor=request.actor, payload=request.data)
        raise_for_result(result)
        data = dict(EncounterSerializer(self.get_object(request, pk)).data)
        data["triage_record_id"] = str(result.data["triage_record_id"])
        return Response(data, status=status.HTTP_200_OK)

    # ------------------------------------------------------------
    # Doctor
    # ------------------------------------------------------------
    @extend_schema(tags=["Consultation"], request=None, responses={200: EncounterSerializer})
    @action(detail=True, methods=["post"], url_path="doctor-claim")
    def doctor_claim(self, request, pk=None):
        raise_for_result(EncounterWorkflowService.claim_doctor_queue_item(encounter_id=pk, actor=request.actor))
        return self._reload(request, pk)

    @extend_schema(tags=["Consultation"], request=None, responses={200: EncounterSerializer})
    @action(detail=True, methods=["post"], url_path="start-consult")
    def start_consult(self, request, pk=None):
        raise_for_result(EncounterWorkflowService.start_consultation(encounter_id=pk, actor=request.actor))
        return self._reload(request, pk)

    @extend_schema(tags=["Consultation"], request=ConsultationNotesSerializer, responses={200: EncounterSerializer})
    @action(detail=True, methods=["post"], url_path="consultation")
    def consultation(self, request, pk=None):
        raise_for_result(
            EncounterWorkflowService.save_consultation(encounter_id=pk, actor=request.actor, payload=request.data)
        )
        return self._reload(request, pk)

    @extend_schema(tags=["Consultation"], request=CompleteConsultationSerializer, responses={200: EncounterSerializer})
    @action(detail=True, methods=["post"], url_path="complete-consult")
    def complete_consult(self, request, pk=None):
        ser = CompleteConsultationSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        raise_for_result(
            EncounterWorkflowService.complete_consultation(
                encounter_id=pk,
                actor=request.actor,
                next_status=ser.validated_data["next_status"],
            )
        )
        return self._reload(request, pk)

    @extend_schema(tags=["Encounters"], request=CancelEncounterSerializer, responses={200: EncounterSerializer})
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        ser = CancelEncounterSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        raise_for_result(
            EncounterWorkflowService.cancel_encounter(
                encounter_id=pk,
                actor=request.actor,
                reason=ser.validated_data.get("reason", ""),
            )
        )
        return self._reload(request, pk)

    # ------------------------------------------------------------
    # Consultation records
    # ------------------------------------------------------------
    @extend_schema(tags=["Consultation"], request=DiagnosisInputSerializer, responses={201: DiagnosisSerializer})
    @action(detail=True, methods=["post"], url_path="diagnoses")
    def diagnoses(self, request, pk=None):
        result = ConsultationRecordService.add_diagnosis(encounter_id=pk, actor=request.actor, payload=request.data)
        raise_for_result(result)
        return Response(DiagnosisSerializer(result.data["diagnosis"]).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Consultation"], request=PrescriptionInputSerializer, responses={201: PrescriptionSerializer})
    @action(detail=True, methods=["post"], url_path="prescriptions")
    def prescriptions(self, request, pk=None):
        result = ConsultationRecordService.add_prescription(encounter_id=pk, actor=request.actor, payload=request.data)
        raise_for_result(result)
        return Response(PrescriptionSerializer(result.data["prescription"]).data, status=status.HTTP_201_CREATED)

    @extend_schema(tags=["Consultation"], request=LabOrderInputSerializer, responses={201: LabOrderSerializer})
    @action(detail=True, methods=["post"], url_path="lab-orders")
    def lab_orders(self, request, pk=None):
        result = ConsultationRecordService.add_lab_order(encounter_id=pk, actor=request.actor, payload=request.data)
        raise_for_result(result)
        return Response(LabOrderSerializer(result.data["lab_order"]).data, status=status.HTTP_201_CREATED)


class QueueViewSet(viewsets.ViewSet):
    """
    Today's triage and doctor queues with per-item claim state for the caller.
    """
    permission_classes = [QueuePermission]
    serializer_class = QueueEntrySerializer

    def _queue(self, request, kind: str) -> Response:
        entries = EncounterWorkflowService.list_queue(
            actor=request.actor,
            kind=kind,
            day=_optional_date(request.query_params.get("day"), "day"),
        )
        return Response(QueueEntrySerializer(entries, many=True).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Queues"],
        parameters=[OpenApiParameter(name="day", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False)],
        responses={200: QueueEntrySerializer(many=True)},
    )
    @action(detail=False, methods=["get"], url_path="triage")
    def triage(self, request):
        return self._queue(request, QueueKind.TRIAGE)

    @extend_schema(
        tags=["Queues"],
        parameters=[OpenApiParameter(name="day", type=OpenApiTypes.DATE, location=OpenApiParameter.QUERY, required=False)],
        responses={200: QueueEntrySerializer(many=True)},
    )
    @action(detail=False, methods=["get"], url_path="doctor")
    def doctor(self, request):
        return self._queue(request, QueueKind.DOCTOR)
