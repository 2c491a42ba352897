"""Recurring booking errors"""

from datetime import date
from typing import Optional


class RecurringBookingError(Exception):
    """Base class for recurring booking errors"""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRule(RecurringBookingError):
    """Start date missing or unparsable, or the rule is otherwise malformed"""


class UnknownFrequency(RecurringBookingError):
    """No repeat interval could be resolved from frequency_repeats or the frequency name"""


class NotFound(RecurringBookingError):
    status_code = 404


class PartialWriteFailure(RecurringBookingError):
    """
    Some, but not all, occurrence rows of a new series were written.
    Rows already written are kept; booking_ids lists them.
    """

    status_code = 207

    def __init__(
        self,
        message: str,
        series_id: str,
        booking_ids: list[str],
        failed_date: Optional[date] = None,
    ):
        super().__init__(message)
        self.series_id = series_id
        self.booking_ids = booking_ids
        self.failed_date = failed_date


class SeriesWriteFailure(RecurringBookingError):
    """Not a single occurrence row of a new series could be written"""

    status_code = 500
