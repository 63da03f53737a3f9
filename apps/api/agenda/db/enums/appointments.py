"""Appointment and schedule enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: scheduled → in_service → done
              ↘ cancelled
              ↘ no_show
    """

    SCHEDULED = "scheduled"  # Booked, not started
    IN_SERVICE = "in_service"  # Client is being served
    DONE = "done"  # Service finished
    NO_SHOW = "no_show"  # Client didn't show up
    CANCELLED = "cancelled"  # Cancelled by client or staff


class CommitmentKind(str, Enum):
    """Variants of a provider time commitment."""

    BLOCK = "block"
    APPOINTMENT = "appointment"


class ScheduleAction(str, Enum):
    """Actions checked by the schedule authorization policy."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"
    CANCEL = "cancel"


# Statuses that occupy the provider's time
ACTIVE_APPOINTMENT_STATUSES = (
    AppointmentStatus.SCHEDULED.value,
    AppointmentStatus.IN_SERVICE.value,
)

# Terminal statuses that can never become cancelled
NON_CANCELLABLE_STATUSES = (
    AppointmentStatus.DONE.value,
    AppointmentStatus.NO_SHOW.value,
)

DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.SCHEDULED
