# clinic_core/audit/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.exceptions import ValidationError

from clinic_core.audit.api.serializers import AuditEntrySerializer
from clinic_core.audit.models import AuditEntry
from clinic_core.audit.selectors import list_audit_entries
from clinic_core.common.api.pagination import paginate
from clinic_core.common.permissions import AuditPermission


class AuditEntryViewSet(viewsets.GenericViewSet):
    """
    Facility audit log (admin only).
    """
    permission_classes = [AuditPermission]
    serializer_class = AuditEntrySerializer
    queryset = AuditEntry.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEntrySerializer(many=True)},
        parameters=[
            OpenApiParameter(name="entity_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="entity_id", type=OpenApiTypes.UUID, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="action", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="actor_user_id", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        params = request.query_params

        entity_id = None
        if params.get("entity_id"):
            try:
                entity_id = UUID(str(params["entity_id"]))
            except ValueError:
                raise ValidationError({"entity_id": ["Invalid UUID."]})

        actor_user_id = None
        if params.get("actor_user_id"):
            try:
                actor_user_id = int(params["actor_user_id"])
            except ValueError:
                raise ValidationError({"actor_user_id": ["Invalid integer."]})

        qs = list_audit_entries(
            facility_id=request.actor.facility_id,
            entity_type=params.get("entity_type") or None,
            entity_id=entity_id,
            action=params.get("action") or None,
            actor_user_id=actor_user_id,
        )
        return paginate(request, qs, AuditEntrySerializer)
