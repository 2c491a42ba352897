"""Recurring booking routers - FastAPI endpoints for bookings, series and provider views"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from ...auth import get_current_business, get_current_provider
from ...database import get_db
from ...models import Business, ServiceProvider
from .exceptions import PartialWriteFailure, RecurringBookingError
from .schemas import (
    BookingCreate,
    BookingCreateResponse,
    CancelSeriesResponse,
    CompleteOccurrenceRequest,
    ExtendAllResponse,
    ExtendSeriesResponse,
    OccurrenceResponse,
    PartialSeriesResponse,
    PreviewRequest,
    PreviewResponse,
    SeriesCreateRequest,
    SeriesCreateResponse,
)
from .service import BookingOccurrence, RecurringSeriesService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recurring", tags=["Recurring Bookings"])
bookings_router = APIRouter(prefix="/bookings", tags=["Bookings"])
provider_router = APIRouter(prefix="/provider", tags=["Provider"])


def get_recurring_service(db: Session = Depends(get_db)) -> RecurringSeriesService:
    """Dependency injection for RecurringSeriesService"""
    return RecurringSeriesService(db)


def _http_error(e: RecurringBookingError) -> HTTPException:
    logger.warning(f"⚠️ {type(e).__name__}: {e.message}")
    return HTTPException(status_code=e.status_code, detail=e.message)


def _partial_response(e: PartialWriteFailure) -> JSONResponse:
    body = PartialSeriesResponse(
        detail=e.message,
        seriesId=e.series_id,
        bookingIds=e.booking_ids,
        failedDate=e.failed_date,
    )
    return JSONResponse(status_code=207, content=body.model_dump(mode="json"))


def _occurrence_response(o: BookingOccurrence) -> OccurrenceResponse:
    return OccurrenceResponse(
        bookingId=o.booking_id,
        seriesId=o.series_id,
        occurrenceDate=o.occurrence_date,
        scheduledTime=o.scheduled_time,
        status=o.status,
        isRecurring=o.is_recurring,
        customerName=o.customer_name,
        customerEmail=o.customer_email,
        customerPhone=o.customer_phone,
        service=o.service,
        address=o.address,
        aptNo=o.apt_no,
        zipCode=o.zip_code,
        providerId=o.provider_id,
        providerName=o.provider_name,
        totalPrice=o.total_price,
        durationMinutes=o.duration_minutes,
    )


# ============================================================================
# BOOKING CREATION
# ============================================================================


@bookings_router.post("", response_model=BookingCreateResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    business: Business = Depends(get_current_business),
    service: RecurringSeriesService = Depends(get_recurring_service),
):
    """Create a booking. With createRecurring and a frequency, a recurring series is created."""
    try:
        result = service.create_booking(business, data)
    except PartialWriteFailure as e:
        return _partial_response(e)
    except RecurringBookingError as e:
        raise _http_error(e)

    return BookingCreateResponse(
        bookingId=result.booking_ids[0],
        bookingIds=result.booking_ids,
        seriesId=result.series_id,
        recurring=result.recurring,
    )


# ============================================================================
# RECURRING SERIES
# ============================================================================


@router.post("/preview", response_model=PreviewResponse)
async def preview_occurrences(
    data: PreviewRequest,
    business: Business = Depends(get_current_business),
    service: RecurringSeriesService = Depends(get_recurring_service),
):
    """Preview the dates a rule produces without saving anything"""
    try:
        interval, dates = service.preview(business, data)
    except RecurringBookingError as e:
        raise _http_error(e)
    return PreviewResponse(interval=interval, dates=dates)


@router.post("/series", response_model=SeriesCreateResponse, status_code=201)
async def create_series(
    data: SeriesCreateRequest,
    business: Business = Depends(get_current_business),
    service: RecurringSeriesService = Depends(get_recurring_service),
):
    """Create a recurring series and its first occurrences"""
    try:
        result = service.create_recurring_series(business, data.template, data.options)
    except PartialWriteFailure as e:
        return _partial_response(e)
    except RecurringBookingError as e:
        raise _http_error(e)

    return SeriesCreateResponse(
        seriesId=result.series_id,
        bookingIds=result.booking_ids,
        occurrenceCount=len(result.booking_ids),
    )


@router.get("/series/{series_id}/occurrences", response_model=list[OccurrenceResponse])
async def get_series_occurrences(
    series_id: str,
    from_date: Optional[date] = Query(None, alias="from"),
    until: Optional[date] = Query(None),
    business: Business = Depends(get_current_business),
    service: RecurringSeriesService = Depends(get_recurring_service),
):
    """Occurrences of a series inside the window, up to the display horizon by default"""
    try:
        occurrences = service.get_series_occurrences(business.id, series_id, until, from_date)
    except RecurringBookingError as e:
        raise _http_error(e)
    return [_occurrence_response(o) for o in occurrences]


@router.post("/series/{series_id}/extend", response_model=ExtendSeriesResponse)
async def extend_series(
    series_id: str,
    business: Business = Depends(get_current_business),
    service: RecurringSeriesService = Depends(get_recurring_service),
):
    """Persist more occurrences for a series that is running low"""
    try:
        created = service.extend_recurring_series(business.id, series_id)
    except RecurringBookingError as e:
        raise _http_error(e)
    return ExtendSeriesResponse(seriesId=series_id, created=created)


@router.post("/series/{series_id}/cancel", response_model=CancelSeriesResponse)
async def cancel_series(
    series_id: str,
    business: Business = Depends(get_current_business),
    service: RecurringSeriesService = Depends(get_recurring_service),
):
    """Cancel a series and every booking in it"""
    try:
        cancelled = service.cancel_series(business.id, series_id)
    except RecurringBookingError as e:
        raise _http_error(e)
    return CancelSeriesResponse(seriesId=series_id, status="cancelled", cancelledBookings=cancelled)


@router.post("/extend", response_model=ExtendAllResponse)
async def extend_all_series(
    business: Business = Depends(get_current_business),
    service: RecurringSeriesService = Depends(get_recurring_service),
):
    """Extend every active series of the business (called when the admin bookings page loads)"""
    extended, total_created = service.extend_all_recurring_series(business.id)
    return ExtendAllResponse(extended=extended, totalCreated=total_created)


# ============================================================================
# PROVIDER PORTAL
# ============================================================================


@provider_router.get("/bookings", response_model=list[OccurrenceResponse])
async def get_provider_bookings(
    from_date: Optional[date] = Query(None, alias="from"),
    until: Optional[date] = Query(None),
    provider: ServiceProvider = Depends(get_current_provider),
    service: RecurringSeriesService = Depends(get_recurring_service),
):
    """Bookings assigned to the current provider, recurring series expanded"""
    try:
        occurrences = service.list_provider_bookings(
            provider.business_id, provider.id, from_date, until
        )
    except RecurringBookingError as e:
        raise _http_error(e)
    return [_occurrence_response(o) for o in occurrences]


@provider_router.post("/bookings/{booking_id}/complete", response_model=OccurrenceResponse)
async def complete_occurrence(
    booking_id: str,
    data: CompleteOccurrenceRequest,
    provider: ServiceProvider = Depends(get_current_provider),
    service: RecurringSeriesService = Depends(get_recurring_service),
):
    """Mark one occurrence of a booking completed"""
    try:
        occurrence = service.record_occurrence_completion(
            provider.business_id, booking_id, data.occurrenceDate, provider_id=provider.id
        )
    except RecurringBookingError as e:
        raise _http_error(e)
    return _occurrence_response(occurrence)
