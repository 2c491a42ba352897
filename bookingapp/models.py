import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Business(Base):
    """A tenant. Every series, booking and catalog row hangs off one business."""

    __tablename__ = "businesses"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    name = Column(String(255), nullable=False)
    industry_id = Column(String(36), nullable=True, index=True)
    created_at = Column(DateTime, server_default=func.now())

    store_options = relationship(
        "BusinessStoreOptions", back_populates="business", uselist=False
    )
    holidays = relationship("BusinessHoliday", back_populates="business")


class ServiceProvider(Base):
    __tablename__ = "service_providers"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    status = Column(String(50), default="active", nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


class IndustryFrequency(Base):
    """Frequency catalog entry configured per business and industry"""

    __tablename__ = "industry_frequencies"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    industry_id = Column(String(36), nullable=False, index=True)
    name = Column(String(100), nullable=False)  # e.g. Weekly, Every Other Week
    frequency_repeats = Column(String(50), nullable=True)  # e.g. "7 days", "monthly"
    created_at = Column(DateTime, server_default=func.now())


class BusinessStoreOptions(Base):
    __tablename__ = "business_store_options"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(
        String(36), ForeignKey("businesses.id"), unique=True, nullable=False, index=True
    )
    # Push recurring occurrences that land on a holiday to the next free day
    holiday_skip_to_next = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    business = relationship("Business", back_populates="store_options")


class BusinessHoliday(Base):
    __tablename__ = "business_holidays"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    name = Column(String(255), nullable=True)
    holiday_date = Column(Date, nullable=False)
    recurring = Column(Boolean, default=False, nullable=False)  # same month/day every year

    business = relationship("Business", back_populates="holidays")


class RecurringSeries(Base):
    """
    Stored recurrence rule plus the booking template its rows are cloned from.
    Readers re-expand from this row, so it must outlive any individual booking.
    """

    __tablename__ = "recurring_series"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)

    # Customer
    customer_id = Column(String(36), nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    # Service template
    service = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    apt_no = Column(String(50), nullable=True)
    zip_code = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    total_price = Column(Float, default=0)
    duration_minutes = Column(Integer, nullable=True)
    customization = Column(JSON, nullable=True)
    payment_method = Column(String(50), default="cash")

    # Provider
    provider_id = Column(String(36), nullable=True, index=True)
    provider_name = Column(String(255), nullable=True)
    same_provider = Column(Boolean, default=True, nullable=False)

    # Rule
    frequency = Column(String(100), nullable=False)  # frequency name as shown to customers
    frequency_repeats = Column(String(50), nullable=True)
    scheduled_time = Column(String(10), nullable=True)  # HH:MM format
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    occurrences_ahead = Column(Integer, default=8, nullable=False)

    # active, cancelled
    status = Column(String(50), default="active", nullable=False, index=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    bookings = relationship("Booking", back_populates="series")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_public_id)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    recurring_series_id = Column(
        String(36), ForeignKey("recurring_series.id"), nullable=True, index=True
    )

    # Scheduling
    scheduled_date = Column(Date, nullable=False, index=True)
    scheduled_time = Column(String(10), nullable=True)  # HH:MM format
    duration_minutes = Column(Integer, nullable=True)
    frequency = Column(String(100), nullable=True)

    # Customer
    customer_id = Column(String(36), nullable=True)
    customer_name = Column(String(255), nullable=True)
    customer_email = Column(String(255), nullable=True)
    customer_phone = Column(String(50), nullable=True)

    # Service
    service = Column(String(255), nullable=True)
    address = Column(Text, nullable=True)
    apt_no = Column(String(50), nullable=True)
    zip_code = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    customization = Column(JSON, nullable=True)

    # Provider
    provider_id = Column(String(36), nullable=True, index=True)
    provider_name = Column(String(255), nullable=True)

    # Pricing
    total_price = Column(Float, default=0)
    tip_amount = Column(Float, default=0)
    payment_method = Column(String(50), default="cash")
    payment_status = Column(String(50), default="pending")  # pending, paid, failed

    # Status workflow: pending → confirmed → in_progress → completed
    # cancelled can be reached from any state. For recurring rows this is the
    # status of the whole series row, individual occurrences are tracked in
    # booking_occurrence_completions.
    status = Column(String(50), default="pending", nullable=False, index=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    series = relationship("RecurringSeries", back_populates="bookings")
    completions = relationship(
        "BookingOccurrenceCompletion",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingOccurrenceCompletion.occurrence_date",
    )

    @property
    def completed_occurrence_dates(self) -> list:
        return sorted({c.occurrence_date for c in self.completions})


class BookingOccurrenceCompletion(Base):
    """One completed occurrence of a (recurring) booking row"""

    __tablename__ = "booking_occurrence_completions"
    __table_args__ = (
        UniqueConstraint("booking_id", "occurrence_date", name="uq_booking_occurrence_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    occurrence_date = Column(Date, nullable=False)
    completed_by = Column(String(36), nullable=True)  # provider id
    completed_at = Column(DateTime, server_default=func.now())

    booking = relationship("Booking", back_populates="completions")


class AdminNotification(Base):
    __tablename__ = "admin_notifications"

    id = Column(Integer, primary_key=True, index=True)
    business_id = Column(String(36), ForeignKey("businesses.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    type = Column(String(50), default="info", nullable=False)
    link = Column(String(500), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
