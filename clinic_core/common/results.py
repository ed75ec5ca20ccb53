# clinic_core/common/results.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from django.db import models

T = TypeVar("T")


class ErrorCode(models.TextChoices):
    NOT_FOUND = "NOT_FOUND", "Not found"
    ALREADY_CLAIMED = "ALREADY_CLAIMED", "Already claimed"
    FORBIDDEN = "FORBIDDEN", "Forbidden"
    VALIDATION_ERROR = "VALIDATION_ERROR", "Validation error"
    DUPLICATE_ENCOUNTER = "DUPLICATE_ENCOUNTER", "Duplicate encounter"
    DUPLICATE_CODE = "DUPLICATE_CODE", "Duplicate code"
    ENCOUNTER_ALREADY_IN_PROGRESS = "ENCOUNTER_ALREADY_IN_PROGRESS", "Encounter already in progress"


@dataclass(frozen=True)
class ActionError:
    code: str
    message: str
    field_errors: Dict[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """
    Outcome of a workflow operation.

    Business-rule failures travel back as values so callers can branch on
    `error.code`; only infrastructure problems are raised.
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[ActionError] = None

    @classmethod
    def success(cls, data: T = None) -> "ActionResult[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(
        cls,
        code: str,
        message: str,
        field_errors: Optional[Dict[str, Any]] = None,
    ) -> "ActionResult[T]":
        return cls(ok=False, error=ActionError(code=str(code), message=message, field_errors=field_errors or {}))

    @property
    def code(self) -> Optional[str]:
        return self.error.code if self.error else None


def not_found(message: str = "Encounter not found or no longer in the expected state") -> ActionResult:
    return ActionResult.failure(ErrorCode.NOT_FOUND, message)


def validation_error(message: str = "Invalid input", field_errors: Optional[Dict[str, Any]] = None) -> ActionResult:
    return ActionResult.failure(ErrorCode.VALIDATION_ERROR, message, field_errors)


def plain_errors(detail: Any) -> Any:
    """
    DRF serializer errors hold ErrorDetail instances; results carry plain strings.
    """
    if isinstance(detail, dict):
        return {k: plain_errors(v) for k, v in detail.items()}
    if isinstance(detail, (list, tuple)):
        return [plain_errors(v) for v in detail]
    return str(detail)
