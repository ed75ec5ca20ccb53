# clinic_core/iam/models.py
import uuid

from django.conf import settings
from django.db import models

from clinic_core.facilities.models import Facility


class StaffRole(models.TextChoices):
    ADMIN = "ADMIN", "Admin"
    REGISTRATION = "REGISTRATION", "Registration"
    TRIAGE = "TRIAGE", "Triage"
    DOCTOR = "DOCTOR", "Doctor"
    LAB = "LAB", "Lab"
    PHARMACY = "PHARMACY", "Pharmacy"


class StaffProfile(models.Model):
    """
    Binds a Django user to exactly one facility with one workflow role.
    This is the RBAC enforcement point: the role decides which queue a worker
    may act on, the facility scopes every read and write.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="staff_profile")
    facility = models.ForeignKey(Facility, on_delete=models.PROTECT, related_name="staff")
    role = models.CharField(max_length=24, choices=StaffRole.choices, db_index=True)

    display_name = models.CharField(max_length=255, blank=True, default="")
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "iam_staff_profile"
        indexes = [
            models.Index(fields=["facility", "role"]),
        ]

    def __str__(self) -> str:
        return f"{self.user.get_username()} ({self.role})"
