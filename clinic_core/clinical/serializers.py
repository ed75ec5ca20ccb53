# clinic_core/clinical/serializers.py
from rest_framework import serializers

from clinic_core.clinical.models import Diagnosis, LabOrder, LabOrderItem, Prescription, PrescriptionItem


class DiagnosisInputSerializer(serializers.Serializer):
    text = serializers.CharField(min_length=1, max_length=500)
    code = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=16)

    def validate_code(self, value):
        return (value or "").strip().upper()


class PrescriptionItemInputSerializer(serializers.Serializer):
    medicine_name = serializers.CharField(min_length=1, max_length=200)
    dosage = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    frequency = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    duration = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    quantity = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=1000)
    instructions = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)


class PrescriptionInputSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)
    items = PrescriptionItemInputSerializer(many=True, allow_empty=False)


class LabOrderItemInputSerializer(serializers.Serializer):
    test_code = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=50)
    test_name = serializers.CharField(min_length=1, max_length=200)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)


class LabOrderInputSerializer(serializers.Serializer):
    items = LabOrderItemInputSerializer(many=True, allow_empty=False)


class DiagnosisSerializer(serializers.ModelSerializer):
    class Meta:
        model = Diagnosis
        fields = ["id", "encounter_id", "text", "code", "created_by_id", "created_at", "deleted_at", "deleted_by_id"]
        read_only_fields = fields


class PrescriptionItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = PrescriptionItem
        fields = ["id", "medicine_name", "dosage", "frequency", "duration", "quantity", "instructions"]
        read_only_fields = fields


class PrescriptionSerializer(serializers.ModelSerializer):
    items = PrescriptionItemSerializer(many=True, read_only=True)

    class Meta:
        model = Prescription
        fields = ["id", "encounter_id", "notes", "created_by_id", "created_at", "items"]
        read_only_fields = fields


class LabOrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = LabOrderItem
        fields = ["id", "test_code", "test_name", "notes"]
        read_only_fields = fields


class LabOrderSerializer(serializers.ModelSerializer):
    items = LabOrderItemSerializer(many=True, read_only=True)

    class Meta:
        model = LabOrder
        fields = ["id", "encounter_id", "status", "requested_by_id", "created_at", "items"]
        read_only_fields = fields
