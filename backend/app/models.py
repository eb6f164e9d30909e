"""SQLAlchemy ORM models.

This module defines the local mirror of LemonSqueezy resources. Every vendor
resource is keyed by the vendor-assigned id string, which carries a unique
constraint so that at most one local row exists per vendor id per kind.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship


# Single Base used by the entire application
Base = declarative_base()


class User(Base):
    """User represents an authenticated caller.

    Tokens presented in the `Authorization` header carry the user id in their
    `sub` claim. Name and email are forwarded to LemonSqueezy when a customer
    or checkout is created for the user.
    """
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    display_name = Column(String, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 1:1 mapping to the vendor customer, created lazily at first checkout
    customer = relationship("Customer", back_populates="user", uselist=False)

    def __str__(self):
        return f"{self.display_name} ({self.email})"


class Customer(Base):
    """Local user <-> LemonSqueezy customer mapping.

    WHAT: Created once per user on first checkout, never updated
    WHY: Portal links are fetched by vendor customer id
    """
    __tablename__ = "customers"
    __table_args__ = (
        UniqueConstraint("user_id", name="uq_customer_user"),
        UniqueConstraint("lemonsqueezy_customer_id", name="uq_customer_lemonsqueezy_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    lemonsqueezy_customer_id = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="customer")

    def __str__(self):
        return f"Customer {self.lemonsqueezy_customer_id}"


class Subscription(Base):
    """Mirror of a LemonSqueezy subscription.

    Upserted by `subscription_id` from webhook events and from the sync job.
    `cancel_at`, `canceled_at` and `trial_start` have no vendor counterpart and
    stay empty; they exist so the record shape matches other billing providers.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        UniqueConstraint("subscription_id", name="uq_subscription_vendor_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # LemonSqueezy identifiers
    subscription_id = Column(String, nullable=False, index=True)
    lemonsqueezy_customer_id = Column(String, nullable=True)
    variant_id = Column(String, nullable=True)

    status = Column(String, nullable=True)  # on_trial, active, paused, past_due, unpaid, cancelled, expired
    quantity = Column(Integer, nullable=False, default=0)
    metadata_ = Column("metadata", JSON, nullable=True)

    # Period bounds
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    cancel_at = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)
    trial_start = Column(DateTime(timezone=True), nullable=True)
    trial_end = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __str__(self):
        return f"Subscription {self.subscription_id} ({self.status})"


class Product(Base):
    """Mirror of a LemonSqueezy product (catalog entry)."""
    __tablename__ = "products"
    __table_args__ = (
        UniqueConstraint("product_id", name="uq_product_vendor_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(String, nullable=False, index=True)
    active = Column(Boolean, nullable=False, default=False)  # status == "published"
    name = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    image = Column(String, nullable=True)  # thumb_url
    metadata_ = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __str__(self):
        return self.name or self.product_id


class Variant(Base):
    """Mirror of a LemonSqueezy variant (a purchasable price of a product).

    `unit_amount` is in the smallest currency unit, as returned by the vendor.
    """
    __tablename__ = "variants"
    __table_args__ = (
        UniqueConstraint("variant_id", name="uq_variant_vendor_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    variant_id = Column(String, nullable=False, index=True)
    product_id = Column(String, nullable=True)  # vendor product id, not a local FK
    active = Column(Boolean, nullable=False, default=False)
    description = Column(Text, nullable=True)
    currency = Column(String, nullable=False, default="USD")
    unit_amount = Column(Integer, nullable=True)
    type = Column(String, nullable=True)  # subscription | one-time
    interval = Column(String, nullable=True)  # day, week, month, year
    interval_count = Column(Integer, nullable=True)
    trial_period_days = Column(Integer, nullable=False, default=0)
    metadata_ = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __str__(self):
        return f"Variant {self.variant_id} ({self.type})"
