from datetime import date, datetime, timezone as dt_timezone

import pytest

from clinic_core.facilities.models import Facility
from clinic_core.facilities.selectors import facility_today

pytestmark = pytest.mark.django_db


def test_today_follows_facility_timezone():
    manila = Facility.objects.create(code="mnl", name="Manila", timezone="Asia/Manila")
    honolulu = Facility.objects.create(code="hnl", name="Honolulu", timezone="Pacific/Honolulu")

    # 20:00 UTC on Mar 1 is already Mar 2 in Manila, still Mar 1 in Honolulu
    moment = datetime(2026, 3, 1, 20, 0, tzinfo=dt_timezone.utc)

    assert facility_today(manila.id, moment) == date(2026, 3, 2)
    assert facility_today(honolulu.id, moment) == date(2026, 3, 1)


def test_unknown_facility_falls_back_to_project_zone(settings):
    import uuid

    settings.TIME_ZONE = "UTC"
    moment = datetime(2026, 3, 1, 20, 0, tzinfo=dt_timezone.utc)
    assert facility_today(uuid.uuid4(), moment) == date(2026, 3, 1)
