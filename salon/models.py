"""Database models for the salon booking backend."""
from __future__ import annotations

from datetime import datetime, timezone

from .extensions import db


def utc_now() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def _iso(value) -> str | None:
    return value.isoformat() if value else None


BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled")
ACTIVE_BOOKING_STATUSES = ("pending", "confirmed")
VARIANT_TYPES = ("style", "duration", "addon", "intensity", "length")
STAFF_ROLES = ("admin", "staff")
ANALYTICS_EVENT_TYPES = ("qr_scan", "google_review_click", "booking_created", "feedback_submitted")
LOYALTY_SOURCES = ("booking", "purchase", "reward", "manual", "registration", "other")


class User(db.Model):
    """Legacy back-office account (username/password or Google sign-in)."""

    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), unique=True, nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(150), nullable=False)
    password_hash = db.Column(db.String(255), nullable=True)
    role = db.Column(
        db.Enum(*STAFF_ROLES, name="user_role", native_enum=False, validate_strings=True),
        nullable=False,
        server_default="staff",
    )
    google_id = db.Column(db.String(255), unique=True, nullable=True)
    google_profile = db.Column(db.JSON, nullable=True)
    avatar = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict_basic(self) -> dict[str, object]:
        return {
            "id": self.user_id,
            "username": self.username,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "avatar": self.avatar,
            "google_linked": bool(self.google_id),
        }


class Staff(db.Model):
    __tablename__ = "staff"

    staff_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone = db.Column(db.String(30))
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(
        db.Enum(*STAFF_ROLES, name="staff_role", native_enum=False, validate_strings=True),
        nullable=False,
        server_default="staff",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    reset_token = db.Column(db.String(128), nullable=True)
    reset_token_expiry = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.staff_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role,
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Customer(db.Model):
    """Registered customer account (distinct from anonymous booking contacts)."""

    __tablename__ = "customers"

    customer_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(30))
    date_of_birth = db.Column(db.Date, nullable=True)
    address = db.Column(db.String(255))
    avatar = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    loyalty = db.relationship("CustomerLoyalty", back_populates="customer", uselist=False)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.customer_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "date_of_birth": _iso(self.date_of_birth),
            "address": self.address,
            "avatar": self.avatar,
            "is_active": bool(self.is_active),
            "created_at": _iso(self.created_at),
        }


class ServiceCategory(db.Model):
    __tablename__ = "service_categories"

    category_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    icon = db.Column(db.String(100))
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    services = db.relationship(
        "Service",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="Service.display_order",
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.category_id,
            "name": self.name,
            "description": self.description,
            "icon": self.icon,
            "display_order": self.display_order,
            "is_active": bool(self.is_active),
        }


class Service(db.Model):
    """Base service; prices are stored in cents."""

    __tablename__ = "services"

    service_id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey("service_categories.category_id"), nullable=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    base_price_cents = db.Column(db.Integer, nullable=False)
    base_duration = db.Column(db.Integer, nullable=False)  # minutes
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        db.CheckConstraint("base_price_cents >= 0", name="ck_service_price_non_negative"),
        db.CheckConstraint("base_duration > 0", name="ck_service_duration_positive"),
    )

    category = db.relationship("ServiceCategory", back_populates="services")
    variants = db.relationship(
        "ServiceVariant",
        back_populates="service",
        cascade="all, delete-orphan",
        order_by="[ServiceVariant.type, ServiceVariant.display_order]",
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.service_id,
            "category_id": self.category_id,
            "name": self.name,
            "description": self.description,
            "base_price_cents": self.base_price_cents,
            "base_price": self.base_price_cents / 100.0,
            "base_duration": self.base_duration,
            "display_order": self.display_order,
            "is_active": bool(self.is_active),
        }


class ServiceVariant(db.Model):
    """Optional modifier a client can select on top of a base service."""

    __tablename__ = "service_variants"

    variant_id = db.Column(db.Integer, primary_key=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    type = db.Column(
        db.Enum(*VARIANT_TYPES, name="variant_type", native_enum=False, validate_strings=True),
        nullable=False,
    )
    price_modifier_cents = db.Column(db.Integer, nullable=False, default=0)
    duration_modifier = db.Column(db.Integer, nullable=False, default=0)
    display_order = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    service = db.relationship("Service", back_populates="variants")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.variant_id,
            "service_id": self.service_id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "price_modifier_cents": self.price_modifier_cents,
            "price_modifier": self.price_modifier_cents / 100.0,
            "duration_modifier": self.duration_modifier,
            "display_order": self.display_order,
            "is_active": bool(self.is_active),
        }


class Booking(db.Model):
    """A customer appointment occupying one slot of the canonical grid."""

    __tablename__ = "bookings"

    booking_id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.customer_id"), nullable=True)
    customer_name = db.Column(db.String(150), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False, index=True)
    customer_phone = db.Column(db.String(30), nullable=False)
    service_id = db.Column(db.Integer, db.ForeignKey("services.service_id"), nullable=False)
    staff_id = db.Column(db.Integer, db.ForeignKey("staff.staff_id", ondelete="SET NULL"), nullable=True)
    booking_date = db.Column(db.Date, nullable=False, index=True)
    booking_time = db.Column(db.String(5), nullable=False)
    status = db.Column(
        db.Enum(*BOOKING_STATUSES, name="booking_status", native_enum=False, validate_strings=True),
        nullable=False,
        default="pending",
        server_default="pending",
    )
    notes = db.Column(db.Text)
    variant_ids = db.Column(db.JSON, nullable=True, default=list)
    total_price_cents = db.Column(db.Integer, nullable=True)
    total_duration = db.Column(db.Integer, nullable=True)
    # "<date>|<time>|<staff id or 0>" while pending/confirmed, NULL otherwise.
    slot_key = db.Column(db.String(64), unique=True, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    service = db.relationship("Service")
    staff = db.relationship("Staff")
    customer = db.relationship("Customer")

    @staticmethod
    def make_slot_key(booking_date, booking_time: str, staff_id: int | None) -> str:
        return f"{booking_date.isoformat()}|{booking_time}|{staff_id or 0}"

    def refresh_slot_key(self) -> None:
        if self.status in ACTIVE_BOOKING_STATUSES:
            self.slot_key = self.make_slot_key(self.booking_date, self.booking_time, self.staff_id)
        else:
            self.slot_key = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.booking_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_email": self.customer_email,
            "customer_phone": self.customer_phone,
            "service_id": self.service_id,
            "service_name": self.service.name if self.service else None,
            "staff_id": self.staff_id,
            "staff_name": self.staff.name if self.staff else None,
            "booking_date": _iso(self.booking_date),
            "booking_time": self.booking_time,
            "status": self.status,
            "notes": self.notes,
            "variant_ids": self.variant_ids or [],
            "total_price_cents": self.total_price_cents,
            "total_price": self.total_price_cents / 100.0 if self.total_price_cents is not None else None,
            "total_duration": self.total_duration,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class LoyaltyProgram(db.Model):
    __tablename__ = "loyalty_programs"

    program_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    points_per_booking = db.Column(db.Integer, nullable=False, default=10)
    points_per_dollar = db.Column(db.Integer, nullable=False, default=1)
    reward_threshold = db.Column(db.Integer, nullable=False, default=100)
    reward_amount_cents = db.Column(db.Integer, nullable=False, default=1000)
    birthday_discount_rate = db.Column(db.Float, nullable=False, default=20.0)
    birthday_discount_days = db.Column(db.Integer, nullable=False, default=7)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    @property
    def reward_amount(self) -> float:
        return self.reward_amount_cents / 100.0

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.program_id,
            "name": self.name,
            "description": self.description,
            "points_per_booking": self.points_per_booking,
            "points_per_dollar": self.points_per_dollar,
            "reward_threshold": self.reward_threshold,
            "reward_amount_cents": self.reward_amount_cents,
            "reward_amount": self.reward_amount,
            "birthday_discount_rate": self.birthday_discount_rate,
            "birthday_discount_days": self.birthday_discount_days,
            "is_active": bool(self.is_active),
        }


class CustomerLoyalty(db.Model):
    __tablename__ = "customer_loyalty"

    loyalty_id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.customer_id"), nullable=True, unique=True)
    customer_email = db.Column(db.String(255), unique=True, nullable=False)
    customer_name = db.Column(db.String(150), nullable=False)
    customer_phone = db.Column(db.String(30))
    total_points = db.Column(db.Integer, nullable=False, default=0)
    lifetime_points = db.Column(db.Integer, nullable=False, default=0)
    rewards_redeemed = db.Column(db.Integer, nullable=False, default=0)
    points_redeemed = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)
    updated_at = db.Column(db.DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        db.CheckConstraint("total_points >= 0", name="ck_loyalty_points_non_negative"),
    )

    customer = db.relationship("Customer", back_populates="loyalty")
    transactions = db.relationship(
        "LoyaltyTransaction",
        back_populates="loyalty",
        cascade="all, delete-orphan",
        order_by="LoyaltyTransaction.created_at.desc()",
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.loyalty_id,
            "customer_id": self.customer_id,
            "customer_email": self.customer_email,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "total_points": self.total_points,
            "lifetime_points": self.lifetime_points,
            "rewards_redeemed": self.rewards_redeemed,
            "points_redeemed": self.points_redeemed,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class LoyaltyTransaction(db.Model):
    """Points history entry for a loyalty record."""

    __tablename__ = "loyalty_transactions"

    transaction_id = db.Column(db.Integer, primary_key=True)
    loyalty_id = db.Column(db.Integer, db.ForeignKey("customer_loyalty.loyalty_id"), nullable=False)
    points = db.Column(db.Integer, nullable=False)
    kind = db.Column(
        db.Enum("earned", "redeemed", name="loyalty_tx_kind", native_enum=False, validate_strings=True),
        nullable=False,
    )
    source = db.Column(
        db.Enum(*LOYALTY_SOURCES, name="loyalty_tx_source", native_enum=False, validate_strings=True),
        nullable=False,
        default="other",
    )
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.booking_id", ondelete="SET NULL"), nullable=True)
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    loyalty = db.relationship("CustomerLoyalty", back_populates="transactions")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.transaction_id,
            "points": self.points,
            "kind": self.kind,
            "source": self.source,
            "booking_id": self.booking_id,
            "description": self.description,
            "created_at": _iso(self.created_at),
        }


class Feedback(db.Model):
    __tablename__ = "feedback"

    feedback_id = db.Column(db.Integer, primary_key=True)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.String(1000))
    customer_email = db.Column(db.String(255))
    customer_name = db.Column(db.String(150))
    service = db.Column(db.String(150))
    stylist = db.Column(db.String(150))
    is_anonymous = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        db.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_feedback_rating_range"),
    )

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.feedback_id,
            "rating": self.rating,
            "comment": self.comment,
            "customer_email": self.customer_email,
            "customer_name": self.customer_name,
            "service": self.service,
            "stylist": self.stylist,
            "is_anonymous": bool(self.is_anonymous),
            "created_at": _iso(self.created_at),
        }


class AnalyticsEvent(db.Model):
    __tablename__ = "analytics_events"

    event_id = db.Column(db.Integer, primary_key=True)
    type = db.Column(
        db.Enum(*ANALYTICS_EVENT_TYPES, name="analytics_event_type", native_enum=False, validate_strings=True),
        nullable=False,
        index=True,
    )
    event_metadata = db.Column("metadata", db.JSON, nullable=True, default=dict)
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.booking_id", ondelete="SET NULL"), nullable=True)
    feedback_id = db.Column(db.Integer, db.ForeignKey("feedback.feedback_id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utc_now, index=True)

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.event_id,
            "type": self.type,
            "metadata": self.event_metadata or {},
            "booking_id": self.booking_id,
            "feedback_id": self.feedback_id,
            "created_at": _iso(self.created_at),
        }
