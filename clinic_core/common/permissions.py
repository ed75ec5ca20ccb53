# clinic_core/common/permissions.py

from __future__ import annotations

from typing import Set

from rest_framework.permissions import BasePermission, SAFE_METHODS

from clinic_core.iam.actor import resolve_actor
from clinic_core.iam.models import StaffRole

ROLE_ADMIN = StaffRole.ADMIN.value
ROLE_REGISTRATION = StaffRole.REGISTRATION.value
ROLE_TRIAGE = StaffRole.TRIAGE.value
ROLE_DOCTOR = StaffRole.DOCTOR.value
ROLE_LAB = StaffRole.LAB.value
ROLE_PHARMACY = StaffRole.PHARMACY.value

ALL_STAFF: Set[str] = {r.value for r in StaffRole}


def ensure_actor_on_request(request):
    """
    Resolve request.actor once per request. Returns None when the user has no
    active staff profile, which permissions turn into a 403.
    """
    if hasattr(request, "actor"):
        return request.actor
    actor = resolve_actor(getattr(request, "user", None))
    setattr(request, "actor", actor)
    return actor


class BaseRolePermission(BasePermission):
    """
    Base permission class for role-based access control.

    - Requires an authenticated user with an active StaffProfile.
    - ADMIN bypass.
    - Uses allowed_roles_per_action for strict RBAC.
    - Unknown SAFE actions fall back to list/retrieve.
    """
    message = "You do not have permission to perform this action."

    # Override in subclasses: dict of action -> set of allowed roles
    allowed_roles_per_action = {
        "list": ALL_STAFF,
        "retrieve": ALL_STAFF,
    }

    def _infer_action(self, request, view) -> str | None:
        action = getattr(view, "action", None)
        if action:
            return action

        kwargs = getattr(view, "kwargs", {}) or {}
        is_detail = "pk" in kwargs or "id" in kwargs

        method = request.method.upper()
        if method in ("GET", "HEAD", "OPTIONS"):
            return "retrieve" if is_detail else "list"
        if method == "POST":
            return "create"
        if method == "DELETE":
            return "destroy"
        return None

    def has_permission(self, request, view) -> bool:
        actor = ensure_actor_on_request(request)
        if actor is None:
            return False

        if actor.is_admin:
            return True

        action = self._infer_action(request, view)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            is_detail = "pk" in kwargs or "id" in kwargs
            allowed = self.allowed_roles_per_action.get("retrieve" if is_detail else "list")

        if allowed is not None:
            return actor.role in allowed

        # Unknown action => deny by default
        return False

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


class EncounterPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": ALL_STAFF,
        "retrieve": ALL_STAFF,
        "timeline": ALL_STAFF,
        "create": {ROLE_REGISTRATION, ROLE_TRIAGE},
        "claim": {ROLE_TRIAGE},
        "release": {ROLE_TRIAGE},
        "triage": {ROLE_TRIAGE},
        "doctor_claim": {ROLE_DOCTOR},
        "start_consult": {ROLE_DOCTOR},
        "consultation": {ROLE_DOCTOR},
        "complete_consult": {ROLE_DOCTOR},
        "cancel": {ROLE_REGISTRATION, ROLE_TRIAGE, ROLE_DOCTOR},
        "diagnoses": {ROLE_DOCTOR},
        "prescriptions": {ROLE_DOCTOR},
        "lab_orders": {ROLE_DOCTOR},
    }


class QueuePermission(BaseRolePermission):
    allowed_roles_per_action = {
        "triage": {ROLE_TRIAGE},
        "doctor": {ROLE_DOCTOR},
    }


class DiagnosisPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "destroy": {ROLE_DOCTOR},
    }


class AuditPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": {ROLE_ADMIN},
        "retrieve": {ROLE_ADMIN},
    }
