# clinic_core/iam/actor.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from clinic_core.iam.models import StaffProfile, StaffRole


@dataclass(frozen=True)
class Actor:
    """
    Explicit identity handed to every workflow operation.
    Services never look at request/session state.
    """
    user_id: int
    name: str
    role: str
    facility_id: UUID

    @property
    def is_admin(self) -> bool:
        return self.role == StaffRole.ADMIN

    def has_role(self, *roles: str) -> bool:
        return self.is_admin or self.role in roles


def resolve_actor(user) -> Optional[Actor]:
    """
    One query: authenticated user -> active StaffProfile -> Actor.
    Returns None for anonymous users and users without an active profile.
    """
    if not user or not getattr(user, "is_authenticated", False):
        return None

    profile = (
        StaffProfile.objects.filter(user_id=user.pk, is_active=True)
        .select_related("user")
        .first()
    )
    if profile is None:
        return None

    u = profile.user
    name = profile.display_name or u.get_full_name() or u.get_username()
    return Actor(user_id=u.pk, name=name, role=profile.role, facility_id=profile.facility_id)


def lock_actor(actor: Actor) -> None:
    """
    Row-lock the actor's StaffProfile for the rest of the transaction.
    Serialises per-worker rules (one live triage claim) across concurrent requests.
    """
    list(StaffProfile.objects.select_for_update().filter(user_id=actor.user_id).only("pk"))
