"""Recurring booking schemas - Pydantic models for validation"""

from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import validate_time_of_day


class BookingTemplate(BaseModel):
    """Booking fields cloned onto every occurrence of a series"""

    customerId: Optional[str] = None
    customerName: Optional[str] = None
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    service: Optional[str] = None
    address: Optional[str] = None
    aptNo: Optional[str] = None
    zipCode: Optional[str] = None
    notes: Optional[str] = None
    totalPrice: float = 0
    durationMinutes: Optional[int] = None
    customization: Optional[dict] = None
    providerId: Optional[str] = None
    providerName: Optional[str] = None
    paymentMethod: str = "cash"
    scheduledTime: Optional[str] = None

    @field_validator("scheduledTime")
    @classmethod
    def validate_scheduled_time(cls, v):
        return validate_time_of_day(v)

    @field_validator("totalPrice")
    @classmethod
    def validate_price(cls, v):
        if v < 0:
            raise ValueError("Total price cannot be negative")
        return v


class SeriesOptions(BaseModel):
    """Recurrence settings for a new series. Dates are ISO strings (YYYY-MM-DD)."""

    startDate: Optional[str] = None
    endDate: Optional[str] = None
    frequencyName: str
    frequencyRepeats: Optional[str] = None
    occurrencesAhead: Optional[int] = None
    sameProvider: bool = True


class SeriesCreateRequest(BaseModel):
    template: BookingTemplate
    options: SeriesOptions


class SeriesCreateResponse(BaseModel):
    seriesId: str
    bookingIds: list[str]
    occurrenceCount: int


class PartialSeriesResponse(BaseModel):
    """Returned with HTTP 207 when only some occurrence rows were written"""

    detail: str
    seriesId: str
    bookingIds: list[str]
    failedDate: Optional[date] = None


class BookingCreate(BookingTemplate):
    """Schema for the booking form. createRecurring with a frequency starts a series."""

    scheduledDate: str
    endDate: Optional[str] = None
    frequency: Optional[str] = None
    frequencyRepeats: Optional[str] = None
    createRecurring: bool = False
    occurrencesAhead: Optional[int] = None
    sameProvider: bool = True


class BookingCreateResponse(BaseModel):
    bookingId: str
    bookingIds: list[str]
    seriesId: Optional[str] = None
    recurring: bool = False


class PreviewRequest(BaseModel):
    """Expand a rule without saving anything (booking form preview)"""

    startDate: Optional[str] = None
    endDate: Optional[str] = None
    frequencyName: Optional[str] = None
    frequencyRepeats: Optional[str] = None
    maxOccurrences: Optional[int] = Field(default=None, ge=1)
    upToDate: Optional[date] = None


class PreviewResponse(BaseModel):
    interval: str
    dates: list[date]


class OccurrenceResponse(BaseModel):
    """One occurrence of a booking, persisted or expanded from its series"""

    bookingId: str
    seriesId: Optional[str] = None
    occurrenceDate: date
    scheduledTime: Optional[str] = None
    status: str
    isRecurring: bool
    customerName: Optional[str] = None
    customerEmail: Optional[str] = None
    customerPhone: Optional[str] = None
    service: Optional[str] = None
    address: Optional[str] = None
    aptNo: Optional[str] = None
    zipCode: Optional[str] = None
    providerId: Optional[str] = None
    providerName: Optional[str] = None
    totalPrice: Optional[float] = None
    durationMinutes: Optional[int] = None


class CompleteOccurrenceRequest(BaseModel):
    occurrenceDate: Optional[str] = None


class ExtendSeriesResponse(BaseModel):
    seriesId: str
    created: int


class ExtendAllResponse(BaseModel):
    extended: int
    totalCreated: int


class CancelSeriesResponse(BaseModel):
    seriesId: str
    status: str
    cancelledBookings: int
