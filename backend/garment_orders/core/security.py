"""
Bearer token handling.

Access tokens are HS256 JWTs signed with ``secret_key``. They carry the user
id in ``sub`` plus the ``role`` and ``employee_id`` claims the order pipeline
needs for permission checks, ownership checks and ledger attribution.
Tokens are issued by the identity provider; ``create_access_token`` exists
for operational tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from jose import JWTError, jwt

from garment_orders.core.config import get_settings
from garment_orders.core.logging import get_logger

logger = get_logger(__name__)


class TokenError(Exception):
    """Raised when a bearer token cannot be trusted."""

    def __init__(self, message: str, code: str, **context):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context


def create_access_token(
    subject: UUID,
    role: Optional[str] = None,
    employee_id: Optional[UUID] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed access token.

    Args:
        subject: User id stored in ``sub``
        role: Role name claim
        employee_id: Employee id claim, used as actor on ledger rows
        expires_delta: Optional custom lifetime

    Returns:
        Encoded JWT string
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    claims: Dict[str, Any] = {
        "sub": str(subject),
        "role": role,
        "employee_id": str(employee_id) if employee_id else None,
        "iat": now,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate an access token.

    Args:
        token: JWT string

    Returns:
        Decoded claims

    Raises:
        TokenError: If the token is empty, expired, malformed or lacks ``sub``
    """
    if not token:
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError as e:
        logger.warning("Token has expired", error=str(e))
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning("Invalid token", error=str(e), error_type=type(e).__name__)
        raise TokenError("Invalid token", code="TOKEN_INVALID") from e

    if not payload.get("sub"):
        raise TokenError("Token missing subject", code="TOKEN_INVALID")
    return payload
