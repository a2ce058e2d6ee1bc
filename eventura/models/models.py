from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    select,
    text,
)
from sqlalchemy.orm import Mapped, column_property, mapped_column, relationship

from ..db import Base
from ..schemas.common import (
    AccountStatus,
    PaymentStatus,
    PitchStatus,
    RequestStatus,
    ServiceType,
    UserRole,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def status_enum(enum_cls):
    # Stored as plain strings so the database never needs native enum types
    return SAEnum(enum_cls, native_enum=False, length=20, validate_strings=True)


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    mobile_number: Mapped[Optional[str]] = mapped_column(String(50))
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(status_enum(UserRole), nullable=False, default=UserRole.CLIENT)
    account_status: Mapped[AccountStatus] = mapped_column(
        status_enum(AccountStatus), nullable=False, default=AccountStatus.ACTIVE
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ServiceRequest(Base):
    __tablename__ = "service_requests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    event_name: Mapped[str] = mapped_column(String(200), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    service_type: Mapped[ServiceType] = mapped_column(status_enum(ServiceType), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    budget: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[RequestStatus] = mapped_column(
        status_enum(RequestStatus), nullable=False, default=RequestStatus.OPEN, index=True
    )
    # Set only by pitch selection
    assigned_provider_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    client = relationship("User", foreign_keys=[client_id])
    assigned_provider = relationship("User", foreign_keys=[assigned_provider_id])
    pitches = relationship("Pitch", back_populates="request", order_by="Pitch.id")
    payments = relationship("Payment", back_populates="request", order_by="Payment.id")

    @property
    def client_name(self) -> Optional[str]:
        return self.client.full_name if self.client else None

    @property
    def client_email(self) -> Optional[str]:
        return self.client.email if self.client else None

    @property
    def client_phone(self) -> Optional[str]:
        return self.client.mobile_number if self.client else None


class Pitch(Base):
    __tablename__ = "pitches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(ForeignKey("service_requests.id"), nullable=False, index=True)
    provider_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    pitch_details: Mapped[str] = mapped_column(Text, nullable=False)
    proposed_price: Mapped[float] = mapped_column(Float, nullable=False)
    status: Mapped[PitchStatus] = mapped_column(status_enum(PitchStatus), nullable=False, default=PitchStatus.PENDING)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    request = relationship("ServiceRequest", back_populates="pitches")

    __table_args__ = (
        UniqueConstraint("request_id", "provider_id", name="uq_pitch_request_provider"),
    )


# Derived on read from the pitch rows, never stored
ServiceRequest.pitch_count = column_property(
    select(func.count(Pitch.id))
    .where(Pitch.request_id == ServiceRequest.id)
    .correlate_except(Pitch)
    .scalar_subquery()
)


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Not unique: a FAILED payment may be followed by a new attempt
    request_id: Mapped[int] = mapped_column(ForeignKey("service_requests.id"), nullable=False, index=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    provider_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        status_enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING
    )
    transaction_id: Mapped[Optional[str]] = mapped_column(String(64), unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    request = relationship("ServiceRequest", back_populates="payments")

    __table_args__ = (
        # At most one live (non-FAILED) payment per request
        Index(
            "uq_payments_live_request",
            "request_id",
            unique=True,
            sqlite_where=text("payment_status != 'FAILED'"),
            postgresql_where=text("payment_status != 'FAILED'"),
        ),
    )


class Review(Base):
    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    request_id: Mapped[int] = mapped_column(ForeignKey("service_requests.id"), nullable=False, unique=True)
    client_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    provider_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Notification(Base):
    """In-app notification feed entries"""
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "is_read"),
        Index("idx_notifications_created", "created_at"),
    )
