# clinic_core/encounters/state_machine.py
"""
Encounter lifecycle.

    WAIT_TRIAGE -> TRIAGED -> WAIT_DOCTOR -> IN_CONSULT -> FOR_LAB | FOR_PHARMACY | DONE
    any non-terminal -> CANCELLED
    FOR_LAB -> TRIAGED   (patient returns with lab results; intake reopens it)

Pure functions only; the services embed expected_status() in the WHERE clause
of their conditional updates so that a repeated call on an encounter that has
already moved on matches zero rows.
"""
from __future__ import annotations

from typing import Optional

from django.db import models

from clinic_core.encounters.constants import COMPLETION_TARGETS, TERMINAL_STATUSES, EncounterStatus


class WorkflowAction(models.TextChoices):
    CREATE = "CREATE", "Create"
    SUBMIT_TRIAGE = "SUBMIT_TRIAGE", "Submit triage"
    CLAIM_FOR_DOCTOR = "CLAIM_FOR_DOCTOR", "Doctor claim"
    START_CONSULT = "START_CONSULT", "Start consultation"
    COMPLETE_CONSULT = "COMPLETE_CONSULT", "Complete consultation"
    FOLLOW_UP = "FOLLOW_UP", "Lab follow-up"
    CANCEL = "CANCEL", "Cancel"


class InvalidTransition(Exception):
    def __init__(self, current: Optional[str], action: str, target: Optional[str] = None):
        self.current = current
        self.action = action
        self.target = target
        msg = f"{action} is not allowed from {current or 'new'}"
        if target:
            msg += f" to {target}"
        super().__init__(msg)


_LINEAR = {
    WorkflowAction.SUBMIT_TRIAGE: (EncounterStatus.WAIT_TRIAGE, EncounterStatus.TRIAGED),
    WorkflowAction.CLAIM_FOR_DOCTOR: (EncounterStatus.TRIAGED, EncounterStatus.WAIT_DOCTOR),
    WorkflowAction.START_CONSULT: (EncounterStatus.WAIT_DOCTOR, EncounterStatus.IN_CONSULT),
    WorkflowAction.COMPLETE_CONSULT: (EncounterStatus.IN_CONSULT, None),
    WorkflowAction.FOLLOW_UP: (EncounterStatus.FOR_LAB, EncounterStatus.TRIAGED),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def expected_status(action: str) -> Optional[str]:
    """
    The single status an action starts from. None for CREATE (no row yet) and
    CANCEL (any non-terminal status).
    """
    if action in _LINEAR:
        return _LINEAR[action][0]
    if action in (WorkflowAction.CREATE, WorkflowAction.CANCEL):
        return None
    raise InvalidTransition(None, action)


def next_status(current: Optional[str], action: str, target: Optional[str] = None) -> str:
    if action == WorkflowAction.CREATE:
        if current is not None:
            raise InvalidTransition(current, action)
        return EncounterStatus.WAIT_TRIAGE

    if action == WorkflowAction.CANCEL:
        if current is None or is_terminal(current):
            raise InvalidTransition(current, action)
        return EncounterStatus.CANCELLED

    if action not in _LINEAR:
        raise InvalidTransition(current, action, target)

    source, dest = _LINEAR[action]
    if current != source:
        raise InvalidTransition(current, action, target)

    if action == WorkflowAction.COMPLETE_CONSULT:
        dest = target or EncounterStatus.DONE
        if dest not in COMPLETION_TARGETS:
            raise InvalidTransition(current, action, target)
    elif target is not None and target != dest:
        raise InvalidTransition(current, action, target)

    return dest


def can_transition(current: Optional[str], action: str, target: Optional[str] = None) -> bool:
    try:
        next_status(current, action, target)
    except InvalidTransition:
        return False
    return True
