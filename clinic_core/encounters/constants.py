# clinic_core/encounters/constants.py
from django.db import models


class EncounterStatus(models.TextChoices):
    WAIT_TRIAGE = "WAIT_TRIAGE", "Waiting for triage"
    TRIAGED = "TRIAGED", "Triaged"
    WAIT_DOCTOR = "WAIT_DOCTOR", "Waiting for doctor"
    IN_CONSULT = "IN_CONSULT", "In consult"
    FOR_LAB = "FOR_LAB", "For lab"
    FOR_PHARMACY = "FOR_PHARMACY", "For pharmacy"
    DONE = "DONE", "Done"
    CANCELLED = "CANCELLED", "Cancelled"


TERMINAL_STATUSES = frozenset(
    {
        EncounterStatus.FOR_LAB,
        EncounterStatus.FOR_PHARMACY,
        EncounterStatus.DONE,
        EncounterStatus.CANCELLED,
    }
)

# Where a finished consultation may send the patient
COMPLETION_TARGETS = frozenset({EncounterStatus.FOR_LAB, EncounterStatus.FOR_PHARMACY, EncounterStatus.DONE})

# Past triage but not yet finished with the doctor; blocks a new intake
IN_PROGRESS_STATUSES = frozenset({EncounterStatus.TRIAGED, EncounterStatus.WAIT_DOCTOR, EncounterStatus.IN_CONSULT})

ENTITY_ENCOUNTER = "encounter"
