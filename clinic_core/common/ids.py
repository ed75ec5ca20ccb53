# clinic_core/common/ids.py
from __future__ import annotations

from typing import Any, Optional
from uuid import UUID


def as_uuid(value: Any) -> Optional[UUID]:
    """
    Lenient UUID coercion for ids arriving from URLs or payloads.
    Malformed ids become None, which services report as NOT_FOUND.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None
