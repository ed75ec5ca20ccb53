# clinic_core/clinical/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status, viewsets
from rest_framework.response import Response

from clinic_core.clinical.models import Diagnosis
from clinic_core.clinical.services import ConsultationRecordService
from clinic_core.common.api.exceptions import raise_for_result
from clinic_core.common.permissions import DiagnosisPermission


class DiagnosisViewSet(viewsets.ViewSet):
    """
    Diagnoses are added through /encounters/{id}/diagnoses/; removal is a soft delete here.
    """
    permission_classes = [DiagnosisPermission]
    queryset = Diagnosis.objects.none()
    lookup_value_regex = r"[0-9a-fA-F-]{32,36}"

    @extend_schema(tags=["Consultation"], responses={204: None})
    def destroy(self, request, pk=None):
        raise_for_result(ConsultationRecordService.remove_diagnosis(diagnosis_id=pk, actor=request.actor))
        return Response(status=status.HTTP_204_NO_CONTENT)
