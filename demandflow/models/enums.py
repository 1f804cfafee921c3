"""Enumerations shared by the demand domain models and services.

Values are stored verbatim in string columns, so renaming a member is a
data migration.
"""

from enum import StrEnum


class DemandStatus(StrEnum):
    PENDING = "PENDING"
    CHECK_IN = "CHECK_IN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    REJECTED = "REJECTED"
    BILLED = "BILLED"


class Role(StrEnum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CLERK = "CLERK"
    ANALYST = "ANALYST"
    BILLING = "BILLING"


class DemandPriority(StrEnum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class DemandCategory(StrEnum):
    SOCIAL_WORKER = "SOCIAL_WORKER"
    PSYCHOMOTOR_PHYSIOTHERAPIST = "PSYCHOMOTOR_PHYSIOTHERAPIST"
    SPEECH_THERAPIST = "SPEECH_THERAPIST"
    MUSIC_THERAPIST = "MUSIC_THERAPIST"
    NEUROPSYCHOPEDAGOGUE = "NEUROPSYCHOPEDAGOGUE"
    NEUROPSYCHOLOGIST = "NEUROPSYCHOLOGIST"
    NUTRITIONIST = "NUTRITIONIST"
    PSYCHOLOGIST = "PSYCHOLOGIST"
    PSYCHOMOTRICIAN = "PSYCHOMOTRICIAN"
    PSYCHOPEDAGOGUE = "PSYCHOPEDAGOGUE"
    THERAPIST = "THERAPIST"
    OCCUPATIONAL_THERAPIST = "OCCUPATIONAL_THERAPIST"


class Weekday(StrEnum):
    """Working-day tokens, stored as-is in ``members.working_days``."""

    DOMINGO = "DOMINGO"
    SEGUNDA = "SEGUNDA"
    TERCA = "TERCA"
    QUARTA = "QUARTA"
    QUINTA = "QUINTA"
    SEXTA = "SEXTA"
    SABADO = "SABADO"


# Indexed by ``date.weekday()`` (Monday == 0).
WEEKDAY_BY_INDEX = (
    Weekday.SEGUNDA,
    Weekday.TERCA,
    Weekday.QUARTA,
    Weekday.QUINTA,
    Weekday.SEXTA,
    Weekday.SABADO,
    Weekday.DOMINGO,
)

TERMINAL_STATUSES = frozenset({DemandStatus.REJECTED, DemandStatus.BILLED})

# Once here, a demand can no longer be (re)booked.
CLOSED_FOR_ASSIGNMENT = frozenset({
    DemandStatus.RESOLVED,
    DemandStatus.REJECTED,
    DemandStatus.BILLED,
})
