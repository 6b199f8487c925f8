from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
import bcrypt
import jwt
from fastapi import Request
from .core import get_logger
from .core_settings import Settings
from .domain.models import UserRole
from .errors import UnauthenticatedError, ForbiddenError

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "

@dataclass(frozen=True)
class TokenClaim:
    user_id: str
    role: UserRole

def create_access_token(user_id: str, role: UserRole, settings: Settings) -> str:
    if not settings.JWT_SECRET:
        raise RuntimeError("JWT_SECRET is not configured")
    now = datetime.now(timezone.utc)
    payload = {
        "userId": user_id,
        "role": UserRole(role).value,
        "iat": now,
        "exp": now + timedelta(days=settings.JWT_EXPIRES_DAYS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def decode_access_token(token: str, settings: Settings) -> Optional[TokenClaim]:
    if not settings.JWT_SECRET or not token:
        return None
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.PyJWTError:
        return None
    user_id = payload.get("userId")
    try:
        role = UserRole(payload.get("role"))
    except ValueError:
        return None
    if not isinstance(user_id, str) or not user_id:
        return None
    return TokenClaim(user_id=user_id, role=role)

def claim_from_request(request: Request, settings: Settings) -> Optional[TokenClaim]:
    """Resolve the caller's claim from the Authorization header.

    A missing header, or a token that fails verification, yields ``None`` and
    the request carries on anonymously.
    """
    raw = request.headers.get("Authorization", "").strip()
    if not raw:
        return None
    token = raw[len(BEARER_PREFIX):].strip() if raw.startswith(BEARER_PREFIX) else raw
    claim = decode_access_token(token, settings)
    if claim is None:
        logger.warning("Invalid bearer token presented; continuing as anonymous")
    return claim

def check_auth(claim: Optional[TokenClaim], required_role: Optional[UserRole] = None) -> TokenClaim:
    if claim is None:
        raise UnauthenticatedError()
    if required_role is not None and claim.role != required_role:
        raise ForbiddenError()
    return claim

def hash_password(password: str, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        logger.error("Stored password hash is malformed")
        return False
