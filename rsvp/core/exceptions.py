class AppError(Exception):
    """Base class for all application exceptions."""
    error_code = "internal_error"

    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class EventNotFoundError(AppError):
    """Raised when the event does not exist in the catalog."""
    error_code = "event_not_found"

    def __init__(self, event_id: int):
        super().__init__(f"Event {event_id} not found", status_code=404, details={"event_id": event_id})


class AlreadyRegisteredError(AppError):
    error_code = "already_registered"

    def __init__(self, event_id: int, user_id: int):
        super().__init__(
            "You are already registered for this event",
            status_code=409,
            details={"event_id": event_id, "user_id": user_id},
        )


class CapacityExceededError(AppError):
    """Raised when the event has no free spot left.

    On verify this means the code was valid but other attendees took the
    remaining spots first.
    """
    error_code = "capacity_exceeded"

    def __init__(self, event_id: int):
        super().__init__(
            "Event is full. No spots available.",
            status_code=409,
            details={"event_id": event_id, "available_spots": 0},
        )


class InvalidOrExpiredCodeError(AppError):
    error_code = "invalid_or_expired_code"

    def __init__(self):
        super().__init__(
            "Invalid or expired verification code. Please request a new one.",
            status_code=400,
        )


class CodeFormatError(AppError):
    error_code = "invalid_code_format"

    def __init__(self):
        super().__init__("Verification code must be exactly 6 digits", status_code=422)


class AttendanceStoreUnavailableError(AppError):
    """Raised when the per-event lock cannot be obtained."""
    error_code = "attendance_unavailable"

    def __init__(self, event_id: int):
        super().__init__(
            "Could not update attendance, please try again.",
            status_code=503,
            details={"event_id": event_id},
        )


class AlreadyVerifiedError(AppError):
    error_code = "already_verified"

    def __init__(self, challenge_id: str):
        super().__init__(f"Challenge {challenge_id} is already verified", status_code=409)


class CapacityBelowAttendanceError(AppError):
    error_code = "capacity_below_attendance"

    def __init__(self, attendee_count: int):
        super().__init__(
            f"Capacity cannot be less than current attendees ({attendee_count})",
            status_code=409,
            details={"attendee_count": attendee_count},
        )


class EventHasAttendeesError(AppError):
    error_code = "event_has_attendees"

    def __init__(self, attendee_count: int):
        super().__init__(
            f"Cannot delete event with booked tickets. {attendee_count} attendee(s) have registered for this event.",
            status_code=409,
            details={"attendee_count": attendee_count},
        )
