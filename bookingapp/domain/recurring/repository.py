"""Recurring series repository - Database operations for series and bookings"""

from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, selectinload

from ...models import (
    Booking,
    BookingOccurrenceCompletion,
    BusinessHoliday,
    BusinessStoreOptions,
    IndustryFrequency,
    RecurringSeries,
)


class RecurringSeriesRepository:
    """Repository for recurring series and booking database operations"""

    # Series
    @staticmethod
    def create_series(db: Session, business_id: str, **series_data) -> RecurringSeries:
        """Create a new recurring series"""
        series = RecurringSeries(business_id=business_id, **series_data)
        db.add(series)
        db.commit()
        db.refresh(series)
        return series

    @staticmethod
    def get_series(db: Session, series_id: str, business_id: str) -> Optional[RecurringSeries]:
        """Get a series by ID within a business"""
        return (
            db.query(RecurringSeries)
            .filter(RecurringSeries.id == series_id, RecurringSeries.business_id == business_id)
            .first()
        )

    @staticmethod
    def get_series_by_ids(db: Session, series_ids: list[str]) -> dict[str, RecurringSeries]:
        """Get several series keyed by ID"""
        if not series_ids:
            return {}
        rows = db.query(RecurringSeries).filter(RecurringSeries.id.in_(series_ids)).all()
        return {s.id: s for s in rows}

    @staticmethod
    def get_active_series(db: Session, business_id: str) -> list[RecurringSeries]:
        """Get all active series for a business"""
        return (
            db.query(RecurringSeries)
            .filter(
                RecurringSeries.business_id == business_id,
                RecurringSeries.status == "active",
            )
            .order_by(RecurringSeries.created_at.asc())
            .all()
        )

    @staticmethod
    def update_series(db: Session, series: RecurringSeries, **updates) -> RecurringSeries:
        """Update a series with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(series, key):
                setattr(series, key, value)

        db.commit()
        db.refresh(series)
        return series

    @staticmethod
    def delete_series(db: Session, series: RecurringSeries) -> None:
        """Delete a series that has no rows"""
        db.delete(series)
        db.commit()

    # Bookings
    @staticmethod
    def create_booking(db: Session, business_id: str, **booking_data) -> Booking:
        """Create a single booking row"""
        booking = Booking(business_id=business_id, **booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def get_booking(
        db: Session, booking_id: str, business_id: str, provider_id: Optional[str] = None
    ) -> Optional[Booking]:
        """Get a booking by ID within a business, optionally restricted to one provider"""
        query = db.query(Booking).filter(
            Booking.id == booking_id, Booking.business_id == business_id
        )
        if provider_id:
            query = query.filter(Booking.provider_id == provider_id)
        return query.first()

    @staticmethod
    def get_series_bookings(db: Session, series_id: str) -> list[Booking]:
        """All persisted rows of a series, earliest first"""
        return (
            db.query(Booking)
            .options(selectinload(Booking.completions))
            .filter(Booking.recurring_series_id == series_id)
            .order_by(Booking.scheduled_date.asc(), Booking.created_at.asc())
            .all()
        )

    @staticmethod
    def get_last_series_date(db: Session, series_id: str) -> Optional[date]:
        """Latest scheduled date persisted for a series"""
        return (
            db.query(func.max(Booking.scheduled_date))
            .filter(Booking.recurring_series_id == series_id)
            .scalar()
        )

    @staticmethod
    def count_future_series_bookings(db: Session, series_id: str, today: date) -> int:
        """Persisted rows of a series scheduled today or later"""
        return (
            db.query(func.count(Booking.id))
            .filter(
                Booking.recurring_series_id == series_id,
                Booking.scheduled_date >= today,
            )
            .scalar()
        )

    @staticmethod
    def get_provider_bookings(db: Session, business_id: str, provider_id: str) -> list[Booking]:
        """All bookings assigned to a provider, earliest first"""
        return (
            db.query(Booking)
            .options(selectinload(Booking.completions))
            .filter(Booking.business_id == business_id, Booking.provider_id == provider_id)
            .order_by(Booking.scheduled_date.asc(), Booking.created_at.asc())
            .all()
        )

    @staticmethod
    def cancel_series_bookings(db: Session, series_id: str) -> int:
        """Mark every row of a series cancelled. Returns the number of rows touched."""
        updated = (
            db.query(Booking)
            .filter(Booking.recurring_series_id == series_id, Booking.status != "cancelled")
            .update({Booking.status: "cancelled"}, synchronize_session=False)
        )
        db.commit()
        return updated

    # Completions
    @staticmethod
    def add_completed_occurrence(
        db: Session, booking_id: str, occurrence_date: date, completed_by: Optional[str] = None
    ) -> bool:
        """
        Atomically add occurrence_date to a booking's completed set.

        A single INSERT ... ON CONFLICT DO NOTHING against the
        (booking_id, occurrence_date) unique constraint, so two requests
        completing different dates of the same booking never overwrite each
        other and repeating a date is a no-op.

        Returns True when the date was newly added.
        """
        dialect = db.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert

        stmt = (
            insert(BookingOccurrenceCompletion)
            .values(
                booking_id=booking_id,
                occurrence_date=occurrence_date,
                completed_by=completed_by,
            )
            .on_conflict_do_nothing()
        )
        result = db.execute(stmt)
        db.commit()
        return result.rowcount == 1

    @staticmethod
    def get_completed_dates(db: Session, booking_id: str) -> list[date]:
        """Completed occurrence dates of a booking, ascending"""
        rows = (
            db.query(BookingOccurrenceCompletion.occurrence_date)
            .filter(BookingOccurrenceCompletion.booking_id == booking_id)
            .order_by(BookingOccurrenceCompletion.occurrence_date.asc())
            .all()
        )
        return [r[0] for r in rows]

    @staticmethod
    def get_series_completed_dates(db: Session, series_id: str) -> list[date]:
        """Completed occurrence dates across every row of a series, ascending"""
        rows = (
            db.query(BookingOccurrenceCompletion.occurrence_date)
            .join(Booking, Booking.id == BookingOccurrenceCompletion.booking_id)
            .filter(Booking.recurring_series_id == series_id)
            .distinct()
            .order_by(BookingOccurrenceCompletion.occurrence_date.asc())
            .all()
        )
        return [r[0] for r in rows]

    # Business configuration
    @staticmethod
    def get_frequency_repeats(
        db: Session, business_id: str, industry_id: Optional[str], frequency_name: str
    ) -> Optional[str]:
        """Look up the configured repeat interval for a frequency name (case-insensitive)"""
        query = db.query(IndustryFrequency.frequency_repeats).filter(
            IndustryFrequency.business_id == business_id,
            func.lower(IndustryFrequency.name) == frequency_name.strip().lower(),
        )
        if industry_id:
            query = query.filter(IndustryFrequency.industry_id == industry_id)

        row = query.order_by(IndustryFrequency.id.asc()).first()
        return row[0] if row else None

    @staticmethod
    def get_holiday_skip_enabled(db: Session, business_id: str) -> bool:
        options = (
            db.query(BusinessStoreOptions)
            .filter(BusinessStoreOptions.business_id == business_id)
            .first()
        )
        return bool(options and options.holiday_skip_to_next)

    @staticmethod
    def get_holidays(db: Session, business_id: str) -> list[BusinessHoliday]:
        return db.query(BusinessHoliday).filter(BusinessHoliday.business_id == business_id).all()
