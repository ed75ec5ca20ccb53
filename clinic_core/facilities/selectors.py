# clinic_core/facilities/selectors.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from django.conf import settings
from django.utils import timezone

from clinic_core.facilities.models import Facility


def facility_timezone(facility_id: UUID) -> ZoneInfo:
    tz_name = (
        Facility.objects.filter(id=facility_id).values_list("timezone", flat=True).first()
        or settings.TIME_ZONE
    )
    return ZoneInfo(tz_name)


def facility_today(facility_id: UUID, now: Optional[datetime] = None) -> date:
    """
    Calendar date at the facility for `now` (defaults to the current instant).
    Unknown facilities fall back to the project TIME_ZONE.
    """
    now = now or timezone.now()
    return timezone.localtime(now, facility_timezone(facility_id)).date()
