"""GraphQL surface of the TMS service.

Resolvers stay thin: they check the caller's claim, validate arguments into
the application schemas, delegate to the services and shape the result.
Every ``Shipment.createdBy`` goes through the per-request user loader.
"""

from dataclasses import is_dataclass
from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional
import strawberry
from fastapi import Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from strawberry.fastapi import GraphQLRouter
from strawberry.utils.str_converters import to_camel_case
from tms.application import schemas
from tms.application.loaders import create_user_loader
from tms.application.service import ShipmentService, UserService
from tms.auth_local import check_auth, claim_from_request
from tms.core import get_logger, set_request_context
from tms.domain import models
from tms.errors import BadUserInputError, ServiceError
from tms.infrastructure.db import SessionRunner, get_db

logger = get_logger(__name__)

ShipmentStatus = strawberry.enum(models.ShipmentStatus)
ShipmentPriority = strawberry.enum(models.ShipmentPriority)
UserRole = strawberry.enum(models.UserRole)
SortOrder = strawberry.enum(schemas.SortOrder)

def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return schemas.as_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def _payload(value: Any) -> Any:
    """Strawberry input -> plain dict, leaving out arguments the client never sent."""
    if is_dataclass(value):
        return {k: _payload(v) for k, v in vars(value).items() if v is not strawberry.UNSET}
    return value

def _field_path(loc) -> str:
    """pydantic error location -> the dotted camelCase path the client sent."""
    return ".".join(to_camel_case(p) if isinstance(p, str) else str(p) for p in loc) or "input"

def _validate(model, payload):
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        detail = "; ".join(f"{_field_path(err['loc'])}: {err['msg']}" for err in e.errors())
        raise BadUserInputError(detail)

#############################
# Output types              #
#############################

@strawberry.type
class Location:
    address: str
    city: str
    state: str
    zip: str
    country: str

@strawberry.type
class User:
    id: strawberry.ID
    email: str
    name: str
    role: UserRole
    avatar: Optional[str]
    is_active: bool
    last_login: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_model(cls, user: models.User) -> "User":
        return cls(
            id=strawberry.ID(user.id),
            email=user.email,
            name=user.name,
            role=user.role,
            avatar=user.avatar,
            is_active=user.is_active,
            last_login=to_iso(user.last_login),
            created_at=to_iso(user.created_at),
            updated_at=to_iso(user.updated_at),
        )

@strawberry.type
class Shipment:
    id: strawberry.ID
    shipper_name: str
    carrier_name: str
    pickup_location: Location
    delivery_location: Location
    tracking_number: str
    status: ShipmentStatus
    priority: ShipmentPriority
    rate: float
    weight: float
    estimated_delivery: str
    actual_delivery: Optional[str]
    flagged: bool
    notes: Optional[str]
    created_at: str
    updated_at: str
    created_by_id: strawberry.Private[Optional[str]] = None

    @strawberry.field
    async def created_by(self, info: strawberry.Info) -> Optional[User]:
        if not self.created_by_id:
            return None
        user = await info.context["user_loader"].load(self.created_by_id)
        return User.from_model(user) if user else None

    @classmethod
    def from_model(cls, shipment: models.Shipment) -> "Shipment":
        return cls(
            id=strawberry.ID(shipment.id),
            shipper_name=shipment.shipper_name,
            carrier_name=shipment.carrier_name,
            pickup_location=Location(**shipment.pickup_location),
            delivery_location=Location(**shipment.delivery_location),
            tracking_number=shipment.tracking_number,
            status=shipment.status,
            priority=shipment.priority,
            rate=shipment.rate,
            weight=shipment.weight,
            estimated_delivery=to_iso(shipment.estimated_delivery),
            actual_delivery=to_iso(shipment.actual_delivery),
            flagged=shipment.flagged,
            notes=shipment.notes,
            created_at=to_iso(shipment.created_at),
            updated_at=to_iso(shipment.updated_at),
            created_by_id=shipment.created_by_id,
        )

@strawberry.type
class AuthPayload:
    token: str
    user: User

@strawberry.type
class PaginationInfo:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

@strawberry.type
class ShipmentConnection:
    shipments: List[Shipment]
    pagination: PaginationInfo

@strawberry.type
class ShipmentStats:
    total: int
    pending: int
    picked_up: int
    in_transit: int
    out_for_delivery: int
    delivered: int
    cancelled: int
    on_hold: int
    flagged: int
    total_revenue: float

#############################
# Input types               #
#############################

@strawberry.input
class LocationInput:
    address: str
    city: str
    state: str
    zip: str
    country: str = "USA"

@strawberry.input
class ShipmentFilter:
    status: Optional[ShipmentStatus] = strawberry.UNSET
    priority: Optional[ShipmentPriority] = strawberry.UNSET
    carrier_name: Optional[str] = strawberry.UNSET
    shipper_name: Optional[str] = strawberry.UNSET
    flagged: Optional[bool] = strawberry.UNSET
    search: Optional[str] = strawberry.UNSET
    date_from: Optional[str] = strawberry.UNSET
    date_to: Optional[str] = strawberry.UNSET

@strawberry.input
class CreateShipmentInput:
    shipper_name: str
    carrier_name: str
    pickup_location: LocationInput
    delivery_location: LocationInput
    rate: float
    weight: float
    estimated_delivery: str
    priority: ShipmentPriority = models.ShipmentPriority.MEDIUM
    notes: Optional[str] = strawberry.UNSET

@strawberry.input
class UpdateShipmentInput:
    shipper_name: Optional[str] = strawberry.UNSET
    carrier_name: Optional[str] = strawberry.UNSET
    pickup_location: Optional[LocationInput] = strawberry.UNSET
    delivery_location: Optional[LocationInput] = strawberry.UNSET
    status: Optional[ShipmentStatus] = strawberry.UNSET
    priority: Optional[ShipmentPriority] = strawberry.UNSET
    rate: Optional[float] = strawberry.UNSET
    weight: Optional[float] = strawberry.UNSET
    estimated_delivery: Optional[str] = strawberry.UNSET
    actual_delivery: Optional[str] = strawberry.UNSET
    notes: Optional[str] = strawberry.UNSET

@strawberry.input
class RegisterInput:
    email: str
    password: str
    name: str
    role: UserRole = models.UserRole.employee

@strawberry.input
class LoginInput:
    email: str
    password: str

#############################
# Root Query / Mutation     #
#############################

def _shipments(info: strawberry.Info) -> ShipmentService:
    return ShipmentService(info.context["db"], info.context["settings"])

def _users(info: strawberry.Info) -> UserService:
    return UserService(info.context["db"], info.context["settings"])

async def _run(info: strawberry.Info, fn, *args, **kwargs):
    return await info.context["run_db"](fn, *args, **kwargs)

@strawberry.type
class Query:
    @strawberry.field
    async def shipments(
        self,
        info: strawberry.Info,
        filters: Annotated[Optional[ShipmentFilter], strawberry.argument(name="filter")] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "createdAt",
        sort_order: SortOrder = schemas.SortOrder.DESC,
    ) -> ShipmentConnection:
        shipment_filter = _validate(schemas.ShipmentFilter, _payload(filters) if filters else {})
        page_request = _validate(
            schemas.PageRequest,
            {"page": page, "limit": limit, "sort_by": sort_by, "sort_order": sort_order},
        )
        result = await _run(info, _shipments(info).list_page, shipment_filter, page_request)
        return ShipmentConnection(
            shipments=[Shipment.from_model(s) for s in result.shipments],
            pagination=PaginationInfo(**result.pagination.model_dump()),
        )

    @strawberry.field
    async def shipment(self, info: strawberry.Info, id: strawberry.ID) -> Optional[Shipment]:
        return Shipment.from_model(await _run(info, _shipments(info).get, id))

    @strawberry.field
    async def shipment_stats(self, info: strawberry.Info) -> ShipmentStats:
        stats = await _run(info, _shipments(info).stats)
        return ShipmentStats(**stats.model_dump())

    @strawberry.field
    async def me(self, info: strawberry.Info) -> Optional[User]:
        claim = info.context["user"]
        if claim is None:
            return None
        user = await info.context["user_loader"].load(claim.user_id)
        return User.from_model(user) if user else None

    @strawberry.field
    async def users(self, info: strawberry.Info) -> List[User]:
        check_auth(info.context["user"], models.UserRole.admin)
        return [User.from_model(u) for u in await _run(info, _users(info).list_all)]

@strawberry.type
class Mutation:
    @strawberry.mutation
    async def register(
        self, info: strawberry.Info, data: Annotated[RegisterInput, strawberry.argument(name="input")]
    ) -> AuthPayload:
        payload = _validate(schemas.RegisterInput, _payload(data))
        token, user = await _run(info, _users(info).register, payload)
        return AuthPayload(token=token, user=User.from_model(user))

    @strawberry.mutation
    async def login(
        self, info: strawberry.Info, data: Annotated[LoginInput, strawberry.argument(name="input")]
    ) -> AuthPayload:
        payload = _validate(schemas.LoginInput, _payload(data))
        token, user = await _run(info, _users(info).authenticate, payload)
        return AuthPayload(token=token, user=User.from_model(user))

    @strawberry.mutation
    async def create_shipment(
        self, info: strawberry.Info, data: Annotated[CreateShipmentInput, strawberry.argument(name="input")]
    ) -> Shipment:
        claim = check_auth(info.context["user"])
        payload = _validate(schemas.CreateShipmentInput, _payload(data))
        shipment = await _run(info, _shipments(info).create, payload, creator_id=claim.user_id)
        return Shipment.from_model(shipment)

    @strawberry.mutation
    async def update_shipment(
        self,
        info: strawberry.Info,
        id: strawberry.ID,
        data: Annotated[UpdateShipmentInput, strawberry.argument(name="input")],
    ) -> Shipment:
        check_auth(info.context["user"])
        changes = _validate(schemas.UpdateShipmentInput, _payload(data))
        return Shipment.from_model(await _run(info, _shipments(info).update, id, changes))

    @strawberry.mutation
    async def delete_shipment(self, info: strawberry.Info, id: strawberry.ID) -> bool:
        check_auth(info.context["user"], models.UserRole.admin)
        return await _run(info, _shipments(info).delete, id)

    @strawberry.mutation
    async def flag_shipment(self, info: strawberry.Info, id: strawberry.ID, flagged: bool) -> Shipment:
        check_auth(info.context["user"])
        return Shipment.from_model(await _run(info, _shipments(info).set_flag, id, flagged))

class TMSSchema(strawberry.Schema):
    def process_errors(self, errors, execution_context=None) -> None:
        for error in errors:
            original = getattr(error, "original_error", None)
            if isinstance(original, ServiceError):
                logger.info(f"GraphQL {original.code}: {error.message}")
            elif original is not None:
                logger.error(f"GraphQL resolver failed: {error.message}", exc_info=original)
            else:
                logger.warning(f"GraphQL request rejected: {error.message}")

schema = TMSSchema(query=Query, mutation=Mutation)

async def get_context(request: Request, db: Session = Depends(get_db)) -> Dict[str, Any]:
    settings = request.app.state.settings
    claim = claim_from_request(request, settings)
    if claim is not None:
        set_request_context(user_id=claim.user_id)
    run_db = SessionRunner(db)
    return {
        "request": request,
        "db": db,
        "run_db": run_db,
        "settings": settings,
        "user": claim,
        "user_loader": create_user_loader(db, settings, run_db),
    }

def create_graphql_router() -> GraphQLRouter:
    return GraphQLRouter(schema, graphiql=True, context_getter=get_context)
