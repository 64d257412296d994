"""Administrative authorization.

In-process callers hold an ``AdminCapability`` handed out when the mixer is
built. REST callers present a JWT whose ``role`` claim is ``admin``; the API
layer exchanges a valid token for the capability.
"""

import hmac
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from zkmixer.config import Settings, get_settings

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class AdminCapability:
    """Unforgeable admin token; whoever holds it may administer the mixer."""

    token: str = field(repr=False)

    @classmethod
    def issue(cls) -> "AdminCapability":
        return cls(token=secrets.token_urlsafe(32))

    def matches(self, other: Any) -> bool:
        """Constant-time comparison against another capability."""
        if not isinstance(other, AdminCapability):
            return False
        return hmac.compare_digest(self.token, other.token)


def create_admin_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None,
) -> tuple[str, datetime]:
    """
    Create a JWT granting admin rights.

    Returns:
        tuple: (token, expiry_datetime)
    """
    settings = settings or get_settings()
    if expires_delta is None:
        expires_delta = timedelta(hours=settings.admin_token_expire_hours)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    to_encode = {
        "sub": subject,
        "role": ADMIN_ROLE,
        "exp": expire,
        "iat": now,
    }

    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return encoded_jwt, expire


def verify_admin_token(token: str, settings: Optional[Settings] = None) -> Optional[Dict[str, Any]]:
    """
    Verify and decode an admin JWT.

    Returns:
        Dictionary with token payload if valid and admin, None otherwise
    """
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
    if payload.get("role") != ADMIN_ROLE:
        return None
    return payload
