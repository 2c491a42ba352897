"""Recurring series service - Business logic for recurring bookings"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import DEFAULT_OCCURRENCES_AHEAD, DISPLAY_HORIZON_DAYS, MAX_OCCURRENCES_AHEAD
from ...models import Booking, Business, RecurringSeries
from ...services.notification_service import create_admin_notification
from ...shared.validators import parse_calendar_date
from .exceptions import InvalidRule, NotFound, PartialWriteFailure, SeriesWriteFailure
from .expander import (
    HolidayCalendar,
    RecurrenceRule,
    expand,
    expand_window,
    is_occurrence,
    next_occurrences,
    resolve_interval,
)
from .repository import RecurringSeriesRepository
from .schemas import BookingCreate, BookingTemplate, PreviewRequest, SeriesOptions

logger = logging.getLogger(__name__)

# Booking columns copied from the template onto every occurrence row
TEMPLATE_FIELDS = (
    "customer_id",
    "customer_name",
    "customer_email",
    "customer_phone",
    "service",
    "address",
    "apt_no",
    "zip_code",
    "notes",
    "total_price",
    "duration_minutes",
    "customization",
    "provider_id",
    "provider_name",
    "payment_method",
)


@dataclass
class SeriesCreationResult:
    series_id: str
    booking_ids: list[str] = field(default_factory=list)
    dates: list[date] = field(default_factory=list)


@dataclass
class BookingCreationResult:
    booking_ids: list[str]
    series_id: Optional[str] = None

    @property
    def recurring(self) -> bool:
        return self.series_id is not None


@dataclass(frozen=True)
class BookingOccurrence:
    """A single dated instance of a booking, persisted or expanded from its series"""

    booking_id: str
    series_id: Optional[str]
    occurrence_date: date
    status: str
    scheduled_time: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    service: Optional[str] = None
    address: Optional[str] = None
    apt_no: Optional[str] = None
    zip_code: Optional[str] = None
    provider_id: Optional[str] = None
    provider_name: Optional[str] = None
    total_price: Optional[float] = None
    duration_minutes: Optional[int] = None

    @property
    def is_recurring(self) -> bool:
        return self.series_id is not None


def clamp_occurrences_ahead(value: Optional[int]) -> int:
    """occurrences_ahead limited to [1, MAX_OCCURRENCES_AHEAD]"""
    if value is None:
        value = DEFAULT_OCCURRENCES_AHEAD
    return max(1, min(int(value), MAX_OCCURRENCES_AHEAD))


def occurrence_status(parent: Booking, occurrence_date: date, completed: set) -> str:
    """
    Status of one occurrence of a recurring row.

    A cancelled parent cancels every occurrence, even ones already completed.
    """
    if parent.status == "cancelled":
        return "cancelled"
    if occurrence_date in completed:
        return "completed"
    return "confirmed"


def _template_fields(template: BookingTemplate) -> dict:
    return {
        "customer_id": template.customerId,
        "customer_name": template.customerName,
        "customer_email": template.customerEmail,
        "customer_phone": template.customerPhone,
        "service": template.service,
        "address": template.address,
        "apt_no": template.aptNo,
        "zip_code": template.zipCode,
        "notes": template.notes,
        "total_price": template.totalPrice,
        "duration_minutes": template.durationMinutes,
        "customization": template.customization,
        "provider_id": template.providerId,
        "provider_name": template.providerName,
        "payment_method": template.paymentMethod,
    }


def _build_occurrence(row: Booking, occurrence_date: date, status: str, scheduled_time=None):
    return BookingOccurrence(
        booking_id=row.id,
        series_id=row.recurring_series_id,
        occurrence_date=occurrence_date,
        status=status,
        scheduled_time=scheduled_time or row.scheduled_time,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        customer_phone=row.customer_phone,
        service=row.service,
        address=row.address,
        apt_no=row.apt_no,
        zip_code=row.zip_code,
        provider_id=row.provider_id,
        provider_name=row.provider_name,
        total_price=row.total_price,
        duration_minutes=row.duration_minutes,
    )


class RecurringSeriesService:
    """Service layer for recurring series creation, expansion and completion"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = RecurringSeriesRepository()

    # ------------------------------------------------------------------
    # Rule resolution
    # ------------------------------------------------------------------

    def _holiday_calendar(self, business_id: str) -> Optional[HolidayCalendar]:
        """Holiday calendar when the business skips holidays, otherwise None"""
        if not self.repo.get_holiday_skip_enabled(self.db, business_id):
            return None
        return HolidayCalendar.from_rows(self.repo.get_holidays(self.db, business_id))

    def resolve_frequency_repeats(
        self, business: Business, frequency_name: Optional[str], frequency_repeats: Optional[str]
    ) -> Optional[str]:
        """Explicit repeats win, otherwise the business's frequency catalog is consulted"""
        if frequency_repeats:
            return frequency_repeats
        if not frequency_name:
            return None

        repeats = self.repo.get_frequency_repeats(
            self.db, business.id, business.industry_id, frequency_name
        )
        if repeats:
            logger.debug(f"📚 Catalog resolved {frequency_name!r} to {repeats!r}")
        return repeats

    def preview(self, business: Business, data: PreviewRequest) -> tuple[str, list[date]]:
        """Expand a rule without writing anything"""
        rule = RecurrenceRule.build(
            start_date=data.startDate,
            frequency_name=data.frequencyName,
            frequency_repeats=self.resolve_frequency_repeats(
                business, data.frequencyName, data.frequencyRepeats
            ),
            end_date=data.endDate,
        )
        dates = expand(
            rule,
            max_occurrences=data.maxOccurrences,
            up_to_date=data.upToDate,
            holidays=self._holiday_calendar(business.id),
        )
        return str(resolve_interval(rule)), dates

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_recurring_series(
        self, business: Business, template: BookingTemplate, options: SeriesOptions
    ) -> SeriesCreationResult:
        """
        Create a recurring series and persist its first occurrences.

        The rule is expanded before anything is written, so InvalidRule and
        UnknownFrequency leave the database untouched. Rows are then written
        one at a time; if one fails, the rows already written stay and
        PartialWriteFailure reports them.
        """
        occurrences_ahead = clamp_occurrences_ahead(options.occurrencesAhead)
        frequency_repeats = self.resolve_frequency_repeats(
            business, options.frequencyName, options.frequencyRepeats
        )

        rule = RecurrenceRule.build(
            start_date=options.startDate,
            frequency_name=options.frequencyName,
            frequency_repeats=frequency_repeats,
            end_date=options.endDate,
            occurrences_ahead=occurrences_ahead,
            scheduled_time=template.scheduledTime,
        )
        dates = expand(
            rule,
            max_occurrences=occurrences_ahead,
            holidays=self._holiday_calendar(business.id),
        )
        if not dates:
            raise InvalidRule("Recurrence rule produced no occurrences")

        fields = _template_fields(template)

        logger.info(
            f"📥 Creating {options.frequencyName} series for business {business.id}: "
            f"{len(dates)} occurrence(s) from {rule.start_date}"
        )

        try:
            series = self.repo.create_series(
                self.db,
                business.id,
                frequency=options.frequencyName,
                frequency_repeats=frequency_repeats,
                scheduled_time=template.scheduledTime,
                start_date=rule.start_date,
                end_date=rule.end_date,
                occurrences_ahead=occurrences_ahead,
                same_provider=options.sameProvider,
                status="active",
                **fields,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to create recurring series for business {business.id}: {e}")
            raise

        series_id = series.id
        result = SeriesCreationResult(series_id=series_id)
        for day in dates:
            try:
                booking = self.repo.create_booking(
                    self.db,
                    business.id,
                    recurring_series_id=series_id,
                    scheduled_date=day,
                    scheduled_time=template.scheduledTime,
                    frequency=options.frequencyName,
                    status="pending",
                    payment_status="pending",
                    tip_amount=0,
                    **fields,
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(
                    f"❌ Series {series_id}: failed to write occurrence {day} "
                    f"after {len(result.booking_ids)} of {len(dates)}: {e}"
                )
                if not result.booking_ids:
                    self._discard_empty_series(series_id, business.id)
                    raise SeriesWriteFailure(
                        "Could not create any occurrence of the recurring series"
                    ) from e

                self._notify_series_created(business.id, series_id, len(result.booking_ids))
                raise PartialWriteFailure(
                    f"Created {len(result.booking_ids)} of {len(dates)} occurrences",
                    series_id=series_id,
                    booking_ids=list(result.booking_ids),
                    failed_date=day,
                ) from e

            result.booking_ids.append(booking.id)
            result.dates.append(day)

        logger.info(f"✅ Series {series_id} created with {len(result.booking_ids)} booking(s)")
        self._notify_series_created(business.id, series_id, len(result.booking_ids))
        return result

    def _discard_empty_series(self, series_id: str, business_id: str) -> None:
        try:
            series = self.repo.get_series(self.db, series_id, business_id)
            if series:
                self.repo.delete_series(self.db, series)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Series {series_id}: could not remove series without rows: {e}")

    def _notify_series_created(self, business_id: str, series_id: str, count: int) -> None:
        try:
            create_admin_notification(
                self.db,
                business_id,
                title="Recurring booking created",
                message=f"{count} occurrence(s) created",
                notification_type="booking",
                link=f"/admin/bookings?series={series_id}",
            )
        except Exception as e:
            logger.error(f"❌ Series {series_id}: notification failed: {e}")

    def create_booking(self, business: Business, data: BookingCreate) -> BookingCreationResult:
        """
        Booking form entry point. A frequency with createRecurring starts a
        series; anything else is a single booking row.
        """
        template = BookingTemplate.model_validate(
            data.model_dump(include=set(BookingTemplate.model_fields))
        )

        if data.createRecurring and data.frequency:
            options = SeriesOptions(
                startDate=data.scheduledDate,
                endDate=data.endDate,
                frequencyName=data.frequency,
                frequencyRepeats=data.frequencyRepeats,
                occurrencesAhead=data.occurrencesAhead,
                sameProvider=data.sameProvider,
            )
            series = self.create_recurring_series(business, template, options)
            return BookingCreationResult(booking_ids=series.booking_ids, series_id=series.series_id)

        try:
            scheduled_date = parse_calendar_date(data.scheduledDate)
        except ValueError as e:
            raise InvalidRule(str(e)) from e
        if scheduled_date is None:
            raise InvalidRule("Booking date is required")

        booking = self.repo.create_booking(
            self.db,
            business.id,
            scheduled_date=scheduled_date,
            scheduled_time=template.scheduledTime,
            frequency=data.frequency,
            status="pending",
            payment_status="pending",
            tip_amount=0,
            **_template_fields(template),
        )
        logger.info(f"✅ Booking {booking.id} created for business {business.id}")

        try:
            create_admin_notification(
                self.db,
                business.id,
                title="New booking",
                message=f"Booking for {booking.customer_name or 'a customer'} on {scheduled_date}",
                notification_type="booking",
            )
        except Exception as e:
            logger.error(f"❌ Booking {booking.id}: notification failed: {e}")

        return BookingCreationResult(booking_ids=[booking.id])

    # ------------------------------------------------------------------
    # Display expansion
    # ------------------------------------------------------------------

    def expand_for_display(
        self,
        series: RecurringSeries,
        parent_row: Booking,
        up_to_date: Optional[date] = None,
        from_date: Optional[date] = None,
        series_rows: Optional[list[Booking]] = None,
    ) -> list[BookingOccurrence]:
        """
        Occurrences of a series inside the visible window. Read-only.

        Dates with a persisted row are shown from that row, so a row cancelled
        or reassigned on its own keeps its status and provider. Other dates
        are cloned from the parent row. Completed dates are merged across
        every row of the series, and a cancelled parent cancels everything.
        """
        if up_to_date is None:
            up_to_date = date.today() + timedelta(days=DISPLAY_HORIZON_DAYS)
        if series_rows is None:
            series_rows = self.repo.get_series_bookings(self.db, series.id)

        rule = RecurrenceRule.from_series(series)
        dates = expand_window(
            rule, up_to_date, from_date, holidays=self._holiday_calendar(series.business_id)
        )

        persisted: dict[date, Booking] = {}
        for row in series_rows:
            persisted.setdefault(row.scheduled_date, row)

        completed = set(self.repo.get_series_completed_dates(self.db, series.id))
        scheduled_time = series.scheduled_time or parent_row.scheduled_time

        occurrences = []
        for day in dates:
            status = occurrence_status(parent_row, day, completed)
            row = persisted.get(day)
            if row is None:
                occurrences.append(_build_occurrence(parent_row, day, status, scheduled_time))
                continue
            if row.status == "cancelled":
                status = "cancelled"
            occurrences.append(_build_occurrence(row, day, status))
        return occurrences

    def get_series_occurrences(
        self,
        business_id: str,
        series_id: str,
        up_to_date: Optional[date] = None,
        from_date: Optional[date] = None,
    ) -> list[BookingOccurrence]:
        """Admin view of a series, expanded from its earliest persisted row"""
        series = self.repo.get_series(self.db, series_id, business_id)
        if not series:
            raise NotFound("Recurring series not found")

        rows = self.repo.get_series_bookings(self.db, series.id)
        if not rows:
            raise NotFound("Recurring series has no bookings")

        return self.expand_for_display(series, rows[0], up_to_date, from_date, rows)

    def list_provider_bookings(
        self,
        business_id: str,
        provider_id: str,
        from_date: Optional[date] = None,
        up_to_date: Optional[date] = None,
    ) -> list[BookingOccurrence]:
        """
        A provider's bookings with recurring series expanded.

        One-time rows are listed as they are. Each recurring series the
        provider has a row in is expanded once over the window, and only the
        occurrences assigned to the provider are kept.
        """
        rows = self.repo.get_provider_bookings(self.db, business_id, provider_id)

        own_series_rows: dict[str, list[Booking]] = {}
        occurrences: list[BookingOccurrence] = []
        for row in rows:
            if row.recurring_series_id:
                own_series_rows.setdefault(row.recurring_series_id, []).append(row)
            else:
                occurrences.append(_build_occurrence(row, row.scheduled_date, row.status))

        series_by_id = self.repo.get_series_by_ids(self.db, list(own_series_rows))
        for series_id, own_rows in own_series_rows.items():
            series = series_by_id.get(series_id)
            if series is None:
                logger.warning(
                    f"⚠️ Bookings of provider {provider_id} point at missing series {series_id}"
                )
                occurrences.extend(_build_occurrence(r, r.scheduled_date, r.status) for r in own_rows)
                continue

            series_rows = self.repo.get_series_bookings(self.db, series.id)
            expanded = self.expand_for_display(
                series, series_rows[0], up_to_date, from_date, series_rows
            )
            occurrences.extend(o for o in expanded if o.provider_id == provider_id)

        if from_date:
            occurrences = [o for o in occurrences if o.occurrence_date >= from_date]
        if up_to_date:
            occurrences = [o for o in occurrences if o.occurrence_date <= up_to_date]

        occurrences.sort(key=lambda o: (o.occurrence_date, o.scheduled_time or ""))
        return occurrences

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    def record_occurrence_completion(
        self,
        business_id: str,
        booking_id: str,
        occurrence_date=None,
        provider_id: Optional[str] = None,
    ) -> BookingOccurrence:
        """
        Mark one occurrence of a booking completed.

        Adding a date that is already completed is a no-op that still
        succeeds. The booking's own status is never changed, so completing
        one occurrence does not complete the whole series.
        """
        booking = self.repo.get_booking(self.db, booking_id, business_id, provider_id)
        if not booking:
            raise NotFound("Booking not found")

        try:
            day = parse_calendar_date(occurrence_date)
        except ValueError as e:
            raise InvalidRule(str(e)) from e

        series = None
        if booking.recurring_series_id:
            series = self.repo.get_series(self.db, booking.recurring_series_id, business_id)

        if day is None:
            if series is not None:
                raise InvalidRule("occurrenceDate is required for recurring bookings")
            day = booking.scheduled_date

        if day != booking.scheduled_date:
            if series is None:
                raise InvalidRule(f"{day} is not the date of this booking")
            rule = RecurrenceRule.from_series(series)
            if not is_occurrence(rule, day, self._holiday_calendar(business_id)):
                raise InvalidRule(f"{day} is not an occurrence of this series")

        added = self.repo.add_completed_occurrence(self.db, booking.id, day, provider_id)
        if added:
            logger.info(f"✅ Booking {booking.id}: occurrence {day} completed")
        else:
            logger.info(f"ℹ️ Booking {booking.id}: occurrence {day} was already completed")

        if series is not None:
            completed = set(self.repo.get_series_completed_dates(self.db, series.id))
        else:
            completed = set(self.repo.get_completed_dates(self.db, booking.id))
        return _build_occurrence(
            booking,
            day,
            occurrence_status(booking, day, completed),
            series.scheduled_time if series else None,
        )

    # ------------------------------------------------------------------
    # Extension and cancellation
    # ------------------------------------------------------------------

    def extend_recurring_series(self, business_id: str, series_id: str) -> int:
        """
        Top an active series back up to occurrences_ahead future rows.

        New rows continue after the last persisted date and never start in
        the past. Returns the number of rows created.
        """
        series = self.repo.get_series(self.db, series_id, business_id)
        if not series:
            raise NotFound("Recurring series not found")
        if series.status != "active":
            return 0

        today = date.today()
        wanted = clamp_occurrences_ahead(series.occurrences_ahead)
        future_count = self.repo.count_future_series_bookings(self.db, series.id, today)
        if future_count >= wanted:
            return 0

        last_date = self.repo.get_last_series_date(self.db, series.id)
        after = today - timedelta(days=1)
        if last_date and last_date > after:
            after = last_date

        rule = RecurrenceRule.from_series(series)
        dates = next_occurrences(
            rule, after, wanted - future_count, holidays=self._holiday_calendar(business_id)
        )
        if not dates:
            return 0

        fields = {name: getattr(series, name) for name in TEMPLATE_FIELDS}
        if not series.same_provider:
            fields["provider_id"] = None
            fields["provider_name"] = None

        created = 0
        for day in dates:
            try:
                self.repo.create_booking(
                    self.db,
                    business_id,
                    recurring_series_id=series.id,
                    scheduled_date=day,
                    scheduled_time=series.scheduled_time,
                    frequency=series.frequency,
                    status="pending",
                    payment_status="pending",
                    tip_amount=0,
                    **fields,
                )
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"❌ Series {series.id}: extend failed at {day}: {e}")
                break
            created += 1

        if created:
            logger.info(f"📅 Series {series.id} extended by {created} booking(s)")
        return created

    def extend_all_recurring_series(self, business_id: str) -> tuple[int, int]:
        """Extend every active series of a business. Returns (series checked, rows created)."""
        series_list = self.repo.get_active_series(self.db, business_id)

        total_created = 0
        for series in series_list:
            total_created += self.extend_recurring_series(business_id, series.id)

        return len(series_list), total_created

    def cancel_series(self, business_id: str, series_id: str) -> int:
        """Cancel a series and all of its rows. Returns the number of rows cancelled."""
        series = self.repo.get_series(self.db, series_id, business_id)
        if not series:
            raise NotFound("Recurring series not found")

        self.repo.update_series(self.db, series, status="cancelled")
        cancelled = self.repo.cancel_series_bookings(self.db, series.id)
        logger.info(f"🛑 Series {series.id} cancelled ({cancelled} booking(s))")
        return cancelled
