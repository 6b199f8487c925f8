import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional
from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator
from tms.domain.models import Shipment, ShipmentPriority, ShipmentStatus, UserRole

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# bcrypt only considers the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a timestamp to aware UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]

# Fields an update may explicitly clear with null
NULLABLE_UPDATE_FIELDS = frozenset({"actual_delivery", "notes"})

class SortOrder(str, Enum):
    ASC = "ASC"
    DESC = "DESC"

# API field name -> sortable attribute on the Shipment model
SORTABLE_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "estimatedDelivery": "estimated_delivery",
    "actualDelivery": "actual_delivery",
    "rate": "rate",
    "weight": "weight",
    "status": "status",
    "priority": "priority",
    "shipperName": "shipper_name",
    "carrierName": "carrier_name",
    "trackingNumber": "tracking_number",
    "flagged": "flagged",
}

class LocationInput(BaseModel):
    address: str = Field(min_length=1, max_length=200)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=50)
    zip: str = Field(min_length=1, max_length=20)
    country: str = Field("USA", max_length=50)

class CreateShipmentInput(BaseModel):
    shipper_name: str = Field(min_length=1, max_length=100)
    carrier_name: str = Field(min_length=1, max_length=100)
    pickup_location: LocationInput
    delivery_location: LocationInput
    rate: float = Field(ge=0)
    weight: float = Field(ge=0)
    estimated_delivery: UtcDatetime
    priority: ShipmentPriority = ShipmentPriority.MEDIUM
    notes: Optional[str] = Field(None, max_length=1000)

class UpdateShipmentInput(BaseModel):
    shipper_name: Optional[str] = Field(None, min_length=1, max_length=100)
    carrier_name: Optional[str] = Field(None, min_length=1, max_length=100)
    pickup_location: Optional[LocationInput] = None
    delivery_location: Optional[LocationInput] = None
    status: Optional[ShipmentStatus] = None
    priority: Optional[ShipmentPriority] = None
    rate: Optional[float] = Field(None, ge=0)
    weight: Optional[float] = Field(None, ge=0)
    estimated_delivery: Optional[UtcDatetime] = None
    actual_delivery: Optional[UtcDatetime] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def _reject_null_for_required(self):
        for name in self.model_fields_set:
            if name not in NULLABLE_UPDATE_FIELDS and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> Dict[str, Any]:
        """Only the fields the caller actually supplied."""
        return self.model_dump(exclude_unset=True)

class ShipmentFilter(BaseModel):
    status: Optional[ShipmentStatus] = None
    priority: Optional[ShipmentPriority] = None
    carrier_name: Optional[str] = None
    shipper_name: Optional[str] = None
    flagged: Optional[bool] = None
    search: Optional[str] = None
    date_from: Optional[UtcDatetime] = None
    date_to: Optional[UtcDatetime] = None

    @field_validator("carrier_name", "shipper_name", "search")
    @classmethod
    def _blank_is_absent(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def _ordered_range(self):
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("dateFrom must not be later than dateTo")
        return self

class PageRequest(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1)
    sort_by: str = "createdAt"
    sort_order: SortOrder = SortOrder.DESC

    @field_validator("sort_by")
    @classmethod
    def _known_sort_field(cls, v: str) -> str:
        if v not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort by '{v}'; expected one of {', '.join(sorted(SORTABLE_FIELDS))}")
        return v

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

class PaginationInfo(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

def paginate(total: int, page: int, limit: int) -> PaginationInfo:
    total_pages = math.ceil(total / limit)
    return PaginationInfo(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        has_next_page=page < total_pages,
        has_prev_page=page > 1,
    )

@dataclass
class ShipmentPage:
    shipments: List[Shipment] = field(default_factory=list)
    pagination: Optional[PaginationInfo] = None

class ShipmentStats(BaseModel):
    total: int = 0
    pending: int = 0
    picked_up: int = 0
    in_transit: int = 0
    out_for_delivery: int = 0
    delivered: int = 0
    cancelled: int = 0
    on_hold: int = 0
    flagged: int = 0
    total_revenue: float = 0.0

class RegisterInput(BaseModel):
    email: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=6, max_length=100)
    name: str = Field(min_length=2, max_length=100)
    role: UserRole = UserRole.employee

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_RE.match(v):
            raise ValueError("Invalid email format")
        return v

    @field_validator("password")
    @classmethod
    def _fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v

class LoginInput(BaseModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        return v.strip().lower()
