# clinic_core/clinical/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q

from clinic_core.common.models import FacilityScopedModel, SoftDeleteQuerySet
from clinic_core.encounters.models import Encounter


class Diagnosis(FacilityScopedModel):
    """
    Free-text diagnosis with an optional ICD-10 code. Soft-deleted only, so
    the completion gate counts rows where deleted_at is null.
    """
    encounter = models.ForeignKey(Encounter, on_delete=models.PROTECT, related_name="diagnoses")

    text = models.CharField(max_length=500)
    code = models.CharField(max_length=16, blank=True, default="")

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_diagnoses",
    )
    deleted_at = models.DateTimeField(null=True, blank=True)
    deleted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="deleted_diagnoses",
        null=True,
        blank=True,
    )

    objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        db_table = "clinical_diagnosis"
        ordering = ("created_at",)
        constraints = [
            models.UniqueConstraint(
                fields=["encounter", "code"],
                condition=Q(deleted_at__isnull=True) & ~Q(code=""),
                name="uq_active_diagnosis_code_per_encounter",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.code or '-'} {self.text}"


class Prescription(FacilityScopedModel):
    encounter = models.ForeignKey(Encounter, on_delete=models.PROTECT, related_name="prescriptions")
    notes = models.CharField(max_length=500, blank=True, default="")
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="prescriptions",
    )

    class Meta:
        db_table = "clinical_prescription"
        ordering = ("created_at",)


class PrescriptionItem(models.Model):
    prescription = models.ForeignKey(Prescription, on_delete=models.CASCADE, related_name="items")

    medicine_name = models.CharField(max_length=200)
    dosage = models.CharField(max_length=100, blank=True, default="")
    frequency = models.CharField(max_length=100, blank=True, default="")
    duration = models.CharField(max_length=100, blank=True, default="")
    quantity = models.PositiveIntegerField(null=True, blank=True)
    instructions = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "clinical_prescription_item"


class LabOrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"


class LabOrder(FacilityScopedModel):
    encounter = models.ForeignKey(Encounter, on_delete=models.PROTECT, related_name="lab_orders")
    status = models.CharField(max_length=16, choices=LabOrderStatus.choices, default=LabOrderStatus.PENDING)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="lab_orders",
    )

    class Meta:
        db_table = "clinical_lab_order"
        ordering = ("created_at",)


class LabOrderItem(models.Model):
    lab_order = models.ForeignKey(LabOrder, on_delete=models.CASCADE, related_name="items")

    test_code = models.CharField(max_length=50, blank=True, default="")
    test_name = models.CharField(max_length=200)
    notes = models.CharField(max_length=500, blank=True, default="")

    class Meta:
        db_table = "clinical_lab_order_item"
