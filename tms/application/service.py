import secrets
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple
from sqlalchemy import case, func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from tms.auth_local import create_access_token, hash_password, verify_password
from tms.core import get_logger
from tms.core_settings import Settings
from tms.domain.models import Shipment, ShipmentStatus, User
from tms.errors import BadUserInputError, NotFoundError, UnauthenticatedError
from .schemas import (
    SORTABLE_FIELDS,
    CreateShipmentInput,
    LoginInput,
    PageRequest,
    RegisterInput,
    ShipmentFilter,
    ShipmentPage,
    ShipmentStats,
    SortOrder,
    UpdateShipmentInput,
    paginate,
)

logger = get_logger(__name__)

TRACKING_PREFIX = "TMS"

def generate_tracking_number() -> str:
    """Fixed prefix followed by a zero-padded 9 digit random number."""
    return f"{TRACKING_PREFIX}{secrets.randbelow(10 ** 9):09d}"

def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")

def _contains(column, value: str):
    return column.ilike(f"%{_escape_like(value)}%", escape="\\")

def build_filter_clauses(filters: Optional[ShipmentFilter]) -> list:
    """Translate a shipment filter into predicates that are AND-ed together.

    ``search`` is the only OR group: it matches tracking number, shipper
    name or carrier name. Text matches are literal, case-insensitive
    substrings; the delivery date range is inclusive on both ends.
    """
    if filters is None:
        return []
    clauses = []
    if filters.status is not None:
        clauses.append(Shipment.status == filters.status)
    if filters.priority is not None:
        clauses.append(Shipment.priority == filters.priority)
    if filters.flagged is not None:
        clauses.append(Shipment.flagged.is_(filters.flagged))
    if filters.carrier_name is not None:
        clauses.append(_contains(Shipment.carrier_name, filters.carrier_name))
    if filters.shipper_name is not None:
        clauses.append(_contains(Shipment.shipper_name, filters.shipper_name))
    if filters.search is not None:
        clauses.append(or_(
            _contains(Shipment.tracking_number, filters.search),
            _contains(Shipment.shipper_name, filters.search),
            _contains(Shipment.carrier_name, filters.search),
        ))
    if filters.date_from is not None:
        clauses.append(Shipment.estimated_delivery >= filters.date_from)
    if filters.date_to is not None:
        clauses.append(Shipment.estimated_delivery <= filters.date_to)
    return clauses

def commit_or_rollback(db: Session):
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

def _count_when(condition):
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

class ShipmentService:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        tracking_number_factory: Callable[[], str] = generate_tracking_number,
    ):
        self.db = db
        self.settings = settings
        self.tracking_number_factory = tracking_number_factory

    def get(self, shipment_id: str) -> Shipment:
        shipment = self.db.get(Shipment, shipment_id)
        if shipment is None:
            raise NotFoundError("Shipment not found")
        return shipment

    def list_page(self, filters: Optional[ShipmentFilter], page_request: PageRequest) -> ShipmentPage:
        query = self.db.query(Shipment).filter(*build_filter_clauses(filters))
        total = query.count()

        column = getattr(Shipment, SORTABLE_FIELDS[page_request.sort_by])
        order = column.asc() if page_request.sort_order == SortOrder.ASC else column.desc()
        shipments = (
            query.order_by(order)
            .offset(page_request.skip)
            .limit(page_request.limit)
            .all()
        )
        return ShipmentPage(
            shipments=shipments,
            pagination=paginate(total, page_request.page, page_request.limit),
        )

    def stats(self) -> ShipmentStats:
        statuses = list(ShipmentStatus)
        row = self.db.query(
            func.count(Shipment.id),
            *[_count_when(Shipment.status == s) for s in statuses],
            _count_when(Shipment.flagged.is_(True)),
            func.coalesce(func.sum(Shipment.rate), 0.0),
        ).one()
        total, *status_counts, flagged, revenue = row
        per_status = {s.value.lower(): int(count) for s, count in zip(statuses, status_counts)}
        return ShipmentStats(
            total=int(total),
            flagged=int(flagged),
            total_revenue=float(revenue),
            **per_status,
        )

    def _tracking_number_taken(self, tracking_number: str) -> bool:
        return self.db.query(Shipment.id).filter(Shipment.tracking_number == tracking_number).first() is not None

    def _allocate_tracking_number(self) -> str:
        # The unique constraint stays the final arbiter: a number claimed by a
        # concurrent insert after this check surfaces as an IntegrityError.
        for attempt in range(1, self.settings.TRACKING_NUMBER_ATTEMPTS + 1):
            candidate = self.tracking_number_factory()
            if not self._tracking_number_taken(candidate):
                return candidate
            logger.warning(
                "Tracking number collision",
                extra={'extra_fields': {'tracking_number': candidate, 'attempt': attempt}},
            )
        raise RuntimeError(
            f"Could not allocate a unique tracking number after {self.settings.TRACKING_NUMBER_ATTEMPTS} attempts"
        )

    def create(self, data: CreateShipmentInput, creator_id: str) -> Shipment:
        creator = self.db.get(User, creator_id)
        if creator is None:
            raise UnauthenticatedError("Authenticated user no longer exists")

        shipment = Shipment(
            **data.model_dump(),
            tracking_number=self._allocate_tracking_number(),
            status=ShipmentStatus.PENDING,
            flagged=False,
            created_by_id=creator.id,
        )
        self.db.add(shipment)
        commit_or_rollback(self.db)
        self.db.refresh(shipment)
        logger.info(
            f"Shipment created: {shipment.tracking_number}",
            extra={'extra_fields': {'shipment_id': shipment.id, 'created_by': creator.id}},
        )
        return shipment

    def update(self, shipment_id: str, data: UpdateShipmentInput) -> Shipment:
        shipment = self.get(shipment_id)

        # Update only provided fields
        for key, value in data.changes().items():
            setattr(shipment, key, value)

        commit_or_rollback(self.db)
        self.db.refresh(shipment)
        logger.info(f"Shipment updated: {shipment.id}")
        return shipment

    def set_flag(self, shipment_id: str, flagged: bool) -> Shipment:
        shipment = self.get(shipment_id)
        shipment.flagged = flagged
        commit_or_rollback(self.db)
        self.db.refresh(shipment)
        logger.info(f"Shipment {'flagged' if flagged else 'unflagged'}: {shipment.id}")
        return shipment

    def delete(self, shipment_id: str) -> bool:
        shipment = self.get(shipment_id)
        self.db.delete(shipment)
        commit_or_rollback(self.db)
        logger.info(f"Shipment deleted: {shipment_id}")
        return True

class UserService:
    def __init__(self, db: Session, settings: Settings):
        self.db = db
        self.settings = settings

    def get(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)

    def get_many(self, user_ids: Sequence[str]) -> List[User]:
        if not user_ids:
            return []
        return self.db.query(User).filter(User.id.in_(list(user_ids))).all()

    def list_all(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at.asc()).all()

    def _issue_token(self, user: User) -> str:
        return create_access_token(user.id, user.role, self.settings)

    def register(self, data: RegisterInput) -> Tuple[str, User]:
        if self.db.query(User.id).filter(User.email == data.email).first() is not None:
            raise BadUserInputError("Email already in use")

        user = User(
            email=data.email,
            password_hash=hash_password(data.password, rounds=self.settings.BCRYPT_ROUNDS),
            name=data.name,
            role=data.role,
        )
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            self.db.rollback()
            raise BadUserInputError("Email already in use")
        self.db.refresh(user)
        logger.info(f"User registered: {user.id}", extra={'extra_fields': {'role': user.role.value}})
        return self._issue_token(user), user

    def authenticate(self, data: LoginInput) -> Tuple[str, User]:
        """Check credentials and issue a token.

        Unknown email and wrong password fail identically. Accounts with
        ``is_active`` off are refused the same way, a stricter rule than
        credential checking alone; nothing in the API deactivates a user, so
        it only applies to rows switched off in the database.
        """
        user = self.db.query(User).filter(User.email == data.email).first()
        if user is None or not user.is_active or not verify_password(data.password, user.password_hash):
            logger.info("Login rejected")
            raise UnauthenticatedError("Invalid credentials")

        user.last_login = datetime.now(timezone.utc)
        commit_or_rollback(self.db)
        self.db.refresh(user)
        logger.info(f"User logged in: {user.id}")
        return self._issue_token(user), user
