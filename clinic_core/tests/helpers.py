# clinic_core/tests/helpers.py
from datetime import datetime, timedelta, timezone as dt_timezone

# 09:00 in Manila, far from the local midnight
T0 = datetime(2026, 3, 2, 1, 0, 0, tzinfo=dt_timezone.utc)


def at(seconds: int = 0, minutes: int = 0) -> datetime:
    return T0 + timedelta(seconds=seconds, minutes=minutes)


def error_of(response) -> dict:
    body = response.json()
    assert "error" in body, body
    return body["error"]
