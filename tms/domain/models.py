import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy import String, Float, Boolean, DateTime, ForeignKey, JSON, CheckConstraint, Index
from sqlalchemy import Enum as SAEnum

class ShipmentStatus(str, Enum):
    PENDING = "PENDING"
    PICKED_UP = "PICKED_UP"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    ON_HOLD = "ON_HOLD"

class ShipmentPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

# Member names double as the wire values ("admin", "employee")
class UserRole(str, Enum):
    admin = "admin"
    employee = "employee"

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def new_id() -> str:
    return str(uuid.uuid4())

class Base(DeclarativeBase):
    pass

class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(100))
    name: Mapped[str] = mapped_column(String(100))
    role: Mapped[UserRole] = mapped_column(
        SAEnum(UserRole, name="user_role", native_enum=False, length=20), default=UserRole.employee
    )
    avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    shipments: Mapped[list["Shipment"]] = relationship(back_populates="creator")

class Shipment(Base):
    __tablename__ = "shipments"
    __table_args__ = (
        CheckConstraint("rate >= 0", name="ck_shipments_rate_non_negative"),
        CheckConstraint("weight >= 0", name="ck_shipments_weight_non_negative"),
        Index("ix_shipments_status_created_at", "status", "created_at"),
        Index("ix_shipments_carrier_name_status", "carrier_name", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    shipper_name: Mapped[str] = mapped_column(String(100), index=True)
    carrier_name: Mapped[str] = mapped_column(String(100), index=True)
    # Locations are embedded documents: address, city, state, zip, country
    pickup_location: Mapped[dict] = mapped_column(JSON)
    delivery_location: Mapped[dict] = mapped_column(JSON)
    tracking_number: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    status: Mapped[ShipmentStatus] = mapped_column(
        SAEnum(ShipmentStatus, name="shipment_status", native_enum=False, length=30),
        default=ShipmentStatus.PENDING,
        index=True,
    )
    priority: Mapped[ShipmentPriority] = mapped_column(
        SAEnum(ShipmentPriority, name="shipment_priority", native_enum=False, length=20),
        default=ShipmentPriority.MEDIUM,
        index=True,
    )
    rate: Mapped[float] = mapped_column(Float)
    weight: Mapped[float] = mapped_column(Float)
    estimated_delivery: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    # actual_delivery stays null until the shipment is delivered
    actual_delivery: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    flagged: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    created_by_id: Mapped[str] = mapped_column(ForeignKey("users.id"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    creator: Mapped[User] = relationship(back_populates="shipments")
