"""Bearer-token authentication for principals.

A principal is an address. Tokens carry it in ``sub``; the API trusts the
token for who is calling and the core decides what that caller may do.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

import jwt

from zkpickup.config import Settings, get_settings
from zkpickup.utils.encoding import normalize_address


def create_access_token(
    address: str,
    settings: Optional[Settings] = None,
    expires_delta: Optional[timedelta] = None,
) -> Tuple[str, datetime]:
    """
    Create a JWT access token for a principal address.

    Returns:
        tuple: (token, expiry_datetime)
    """
    settings = settings or get_settings()
    if expires_delta is None:
        expires_delta = timedelta(hours=settings.access_token_expire_hours)

    issued = datetime.now(timezone.utc)
    expire = issued + expires_delta

    to_encode = {
        "sub": normalize_address(address),
        "exp": expire,
        "iat": issued,
    }

    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return encoded_jwt, expire


def verify_access_token(token: str, settings: Optional[Settings] = None) -> Optional[Dict[str, Any]]:
    """
    Verify and decode a JWT access token.

    Returns:
        Dictionary with token payload if valid, None if invalid/expired
    """
    settings = settings or get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
