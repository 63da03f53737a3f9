"""Typed failures raised by the schedule services.

Every error carries a stable `kind` string the request layer can render.
"""


class ScheduleError(Exception):
    """Base exception for schedule service errors."""

    kind = "ScheduleError"

    def __init__(self, message: str | None = None):
        self.message = message or self.__doc__ or self.kind
        super().__init__(self.message)


class InvalidIntervalError(ScheduleError):
    """start_at must be before end_at."""

    kind = "InvalidInterval"


class InvalidProviderError(ScheduleError):
    """Provider does not belong to this tenant."""

    kind = "InvalidProvider"


class ForbiddenOwnershipError(ScheduleError):
    """Providers may only manage their own schedule."""

    kind = "ForbiddenOwnership"


class ForbiddenRoleError(ScheduleError):
    """Role is not allowed to manage schedules."""

    kind = "ForbiddenRole"


class ConflictError(ScheduleError):
    """Interval overlaps an existing commitment."""

    kind = "Conflict"

    def __init__(self, message: str | None = None, conflicting_id=None):
        self.conflicting_id = conflicting_id
        super().__init__(message)


class BlockConflictError(ConflictError):
    """Interval conflicts with a schedule block."""

    kind = "BlockConflict"


class AppointmentConflictError(ConflictError):
    """Interval conflicts with an existing appointment."""

    kind = "AppointmentConflict"


class NotCancellableError(ScheduleError):
    """Appointment is finished and cannot be cancelled."""

    kind = "NotCancellable"


class NotReschedulableError(ScheduleError):
    """Only scheduled or in-service appointments can be moved."""

    kind = "NotReschedulable"


class MinCancelNoticeError(ScheduleError):
    """Too close to the start time to cancel or reschedule."""

    kind = "MinCancelNotice"

    def __init__(self, message: str | None = None, min_notice_hours: int = 0, cutoff_at=None):
        self.min_notice_hours = min_notice_hours
        self.cutoff_at = cutoff_at
        super().__init__(message)


class NotFoundError(ScheduleError):
    """Commitment not found."""

    kind = "NotFound"


class TransientFailureError(ScheduleError):
    """Temporary failure; nothing was applied and the call may be retried."""

    kind = "TransientFailure"
