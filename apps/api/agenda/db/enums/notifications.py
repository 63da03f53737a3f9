"""Schedule notification enums."""

from enum import Enum


class ScheduleEventKind(str, Enum):
    """Kinds of events raised after schedule state transitions."""

    COMMITMENT_CREATED = "commitment.created"
    COMMITMENT_UPDATED = "commitment.updated"
    COMMITMENT_REMOVED = "commitment.removed"
    APPOINTMENT_CANCELLED = "appointment.cancelled"
