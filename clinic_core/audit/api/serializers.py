# clinic_core/audit/api/serializers.py
from rest_framework import serializers

from clinic_core.audit.models import AuditEntry


class AuditEntrySerializer(serializers.ModelSerializer):
    actor_user_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = AuditEntry
        fields = [
            "id",
            "facility_id",
            "action",
            "entity_type",
            "entity_id",
            "encounter_id",
            "actor_user_id",
            "actor_name",
            "occurred_at",
            "metadata",
        ]
        read_only_fields = fields
