# backend/agenda/errors.py
"""
Availability error taxonomy.

Each error carries the HTTP status the API layer answers with
(see the handler registered in main.py).
"""


class AvailabilityError(Exception):
    """Base class for every validation/lookup failure of the availability core."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(AvailabilityError):
    status_code = 404


class FormatError(AvailabilityError):
    pass


class InvalidTimeFormatError(FormatError):
    pass


class InvalidDateFormatError(FormatError):
    pass


class InvalidRangeError(AvailabilityError):
    pass


class InvalidBreakError(AvailabilityError):
    pass


class OverlapError(AvailabilityError):
    status_code = 409


class InvalidConfigError(AvailabilityError):
    status_code = 500
