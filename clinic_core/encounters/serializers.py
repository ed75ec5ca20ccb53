# clinic_core/encounters/serializers.py

from rest_framework import serializers

from clinic_core.encounters.constants import COMPLETION_TARGETS, EncounterStatus
from clinic_core.encounters.models import Encounter, TriageRecord


class EncounterCreateSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()


class EncounterSerializer(serializers.ModelSerializer):
    patient_name = serializers.CharField(source="patient.full_name", read_only=True)
    patient_code = serializers.CharField(source="patient.patient_code", read_only=True)

    class Meta:
        model = Encounter
        fields = [
            "id",
            "facility_id",
            "patient_id",
            "patient_name",
            "patient_code",
            "status",
            "occurred_at",
            "visit_date",
            "claimed_by_id",
            "claimed_at",
            "triage_by_id",
            "doctor_id",
            "consult_started_at",
            "consult_ended_at",
            "cancelled_at",
            "chief_complaint",
            "triage_notes",
            "hpi_doctor_notes",
            "physical_exam_data",
            "clinical_impression",
            "procedures_data",
            "advice_data",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TriageRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = TriageRecord
        fields = [
            "id",
            "encounter_id",
            "bp_systolic",
            "bp_diastolic",
            "heart_rate",
            "respiratory_rate",
            "temperature_c",
            "spo2",
            "weight_kg",
            "height_cm",
            "symptom_onset",
            "symptom_duration",
            "pain_severity",
            "associated_symptoms",
            "exposure_flags",
            "exposure_notes",
            "notes",
            "recorded_by_id",
            "recorded_at",
        ]
        read_only_fields = fields


class TriageSubmitSerializer(serializers.Serializer):
    # Vitals (all optional, metric)
    bp_systolic = serializers.IntegerField(required=False, allow_null=True, min_value=50, max_value=300)
    bp_diastolic = serializers.IntegerField(required=False, allow_null=True, min_value=20, max_value=200)
    heart_rate = serializers.IntegerField(required=False, allow_null=True, min_value=20, max_value=250)
    respiratory_rate = serializers.IntegerField(required=False, allow_null=True, min_value=5, max_value=60)
    temperature_c = serializers.FloatField(required=False, allow_null=True, min_value=30, max_value=45)
    spo2 = serializers.IntegerField(required=False, allow_null=True, min_value=50, max_value=100)
    weight_kg = serializers.FloatField(required=False, allow_null=True, min_value=0.5, max_value=500)
    height_cm = serializers.FloatField(required=False, allow_null=True, min_value=20, max_value=300)

    chief_complaint = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)
    triage_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)

    # Screening
    symptom_onset = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    symptom_duration = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    pain_severity = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=10)
    associated_symptoms = serializers.ListField(
        child=serializers.CharField(max_length=50), required=False, allow_null=True, max_length=20
    )
    exposure_flags = serializers.ListField(
        child=serializers.CharField(max_length=50), required=False, allow_null=True, max_length=10
    )
    exposure_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)


class _ExamSectionSerializer(serializers.Serializer):
    findings = serializers.ListField(child=serializers.CharField())
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)


class HpiNotesSerializer(serializers.Serializer):
    character = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=100)
    location = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=200)
    radiation = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=200)
    aggravating = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)
    relieving = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)
    additional_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)


class PhysicalExamSerializer(serializers.Serializer):
    version = serializers.IntegerField(default=1)
    general = _ExamSectionSerializer(required=False, allow_null=True)
    heent = _ExamSectionSerializer(required=False, allow_null=True)
    chest = _ExamSectionSerializer(required=False, allow_null=True)
    cardiovascular = _ExamSectionSerializer(required=False, allow_null=True)
    abdomen = _ExamSectionSerializer(required=False, allow_null=True)
    skin = _ExamSectionSerializer(required=False, allow_null=True)
    extremities = _ExamSectionSerializer(required=False, allow_null=True)
    neurologic = _ExamSectionSerializer(required=False, allow_null=True)


class _ProcedureSerializer(serializers.Serializer):
    code = serializers.CharField()
    name = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)


class ProceduresSerializer(serializers.Serializer):
    version = serializers.IntegerField(default=1)
    procedures = _ProcedureSerializer(many=True)


class AdviceSerializer(serializers.Serializer):
    version = serializers.IntegerField(default=1)
    instructions = serializers.ListField(child=serializers.CharField())
    follow_up_date = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=32)
    follow_up_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)
    referral = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=500)


class ConsultationNotesSerializer(serializers.Serializer):
    hpi_doctor_notes = HpiNotesSerializer(required=False, allow_null=True)
    physical_exam_data = PhysicalExamSerializer(required=False, allow_null=True)
    clinical_impression = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=2000)
    procedures_data = ProceduresSerializer(required=False, allow_null=True)
    advice_data = AdviceSerializer(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Consultation content cannot be empty.")
        return attrs


class CompleteConsultationSerializer(serializers.Serializer):
    next_status = serializers.ChoiceField(
        choices=sorted(COMPLETION_TARGETS),
        default=EncounterStatus.DONE,
    )


class CancelEncounterSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500, default="")


class QueueEntrySerializer(serializers.Serializer):
    position = serializers.IntegerField()
    state = serializers.CharField()
    priority = serializers.CharField()
    encounter = EncounterSerializer()
