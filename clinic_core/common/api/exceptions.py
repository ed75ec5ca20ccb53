# clinic_core/common/api/exceptions.py

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional, Tuple, Type

from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, NotFound, PermissionDenied, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from clinic_core.common.results import ActionResult, ErrorCode

logger = logging.getLogger(__name__)


def ensure_request_id(request) -> str:
    """
    Return the request's correlation id, minting one on first use.
    """
    if request is None:
        return uuid.uuid4().hex
    rid = getattr(request, "request_id", None)
    if not rid:
        rid = uuid.uuid4().hex
        request.request_id = rid
    return rid


def build_error_envelope(*, request=None, code: str, message: str, details: Any = None) -> Dict[str, Any]:
    """
    {"error": {"code", "message", "details", "request_id"}}
    """
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "request_id": ensure_request_id(request),
        }
    }


class ConflictError(APIException):
    """
    Base 409 for workflow rules that block an otherwise valid request.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"

    def __init__(self, detail=None, code=None):
        super().__init__(detail=detail or self.default_detail, code=code or self.default_code)


class AlreadyClaimedError(ConflictError):
    default_detail = "This patient is already being handled by another worker."
    default_code = "already_claimed"


class DuplicateEncounterError(ConflictError):
    default_detail = "Patient already has an encounter for today."
    default_code = "duplicate_encounter"


class DuplicateCodeError(ConflictError):
    default_detail = "This code is already recorded on the encounter."
    default_code = "duplicate_code"


class EncounterInProgressError(ConflictError):
    default_detail = "Patient already has an active encounter. Complete or cancel it first."
    default_code = "encounter_already_in_progress"


_RESULT_EXCEPTIONS: Dict[str, Type[APIException]] = {
    ErrorCode.NOT_FOUND: NotFound,
    ErrorCode.FORBIDDEN: PermissionDenied,
    ErrorCode.DUPLICATE_ENCOUNTER: DuplicateEncounterError,
    ErrorCode.DUPLICATE_CODE: DuplicateCodeError,
    ErrorCode.ENCOUNTER_ALREADY_IN_PROGRESS: EncounterInProgressError,
}


def raise_for_result(result: ActionResult) -> None:
    """
    Views call this right after a service. Success is a no-op; a failure
    becomes the matching DRF exception and is rendered by api_exception_handler.
    """
    if result.ok:
        return

    err = result.error
    if err.code == ErrorCode.ALREADY_CLAIMED:
        # Fixed wording: clients route back to the queue on this message.
        raise AlreadyClaimedError()
    if err.code == ErrorCode.VALIDATION_ERROR:
        body: Dict[str, Any] = {"detail": err.message}
        if err.field_errors:
            body["field_errors"] = err.field_errors
        raise ValidationError(body)

    exc_class = _RESULT_EXCEPTIONS.get(err.code)
    if exc_class is None:
        logger.error("no HTTP mapping for service error code %s", err.code)
        raise APIException(err.message)
    raise exc_class(err.message)


def _envelope_code(exc: Exception, http_status: int) -> str:
    known = (
        (ValidationError, "validation_error"),
        (NotAuthenticated, "not_authenticated"),
        (PermissionDenied, "permission_denied"),
        (NotFound, "not_found"),
        (Http404, "not_found"),
    )
    for exc_type, code in known:
        if isinstance(exc, exc_type):
            return code
    if isinstance(exc, APIException):
        codes = exc.get_codes()
        return codes if isinstance(codes, str) else (exc.default_code or "api_error")
    return "server_error" if http_status >= 500 else "error"


def _split_detail(data: Any) -> Tuple[str, Optional[Any]]:
    # A "detail" key becomes the message; anything alongside it stays in details.
    if isinstance(data, dict) and "detail" in data:
        extra = {k: v for k, v in data.items() if k != "detail"}
        return str(data["detail"]), (extra or None)
    return "Request failed.", data


def api_exception_handler(exc: Exception, context: Dict[str, Any]):
    request = context.get("request")
    response = drf_exception_handler(exc, context)

    if response is None:
        logger.error("Unhandled API error (request_id=%s)", ensure_request_id(request), exc_info=exc)
        body = build_error_envelope(request=request, code="server_error", message="Unexpected server error.")
        return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    message, details = _split_detail(response.data)
    body = build_error_envelope(
        request=request,
        code=_envelope_code(exc, response.status_code),
        message=message,
        details=details,
    )
    return Response(body, status=response.status_code, headers=response.headers)
