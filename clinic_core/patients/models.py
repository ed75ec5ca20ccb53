# clinic_core/patients/models.py
from django.db import models
from django.db.models import Q

from clinic_core.common.models import FacilityScopedModel, SoftDeleteQuerySet


class Patient(FacilityScopedModel):
    """
    Demographics are owned elsewhere; the workflow only needs to know the
    patient exists in the facility and has not been removed.
    """
    patient_code = models.CharField(max_length=64)

    first_name = models.CharField(max_length=128)
    last_name = models.CharField(max_length=128)
    birth_date = models.DateField(null=True, blank=True)
    sex = models.CharField(max_length=16, blank=True)

    deleted_at = models.DateTimeField(null=True, blank=True)

    objects = SoftDeleteQuerySet.as_manager()

    class Meta:
        db_table = "patients_patient"
        constraints = [
            models.UniqueConstraint(
                fields=["facility_id", "patient_code"],
                condition=Q(deleted_at__isnull=True),
                name="uq_patient_facility_code",
            ),
        ]
        indexes = [
            models.Index(fields=["facility_id", "last_name", "first_name"]),
        ]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __str__(self) -> str:
        return f"{self.full_name} ({self.patient_code})"
