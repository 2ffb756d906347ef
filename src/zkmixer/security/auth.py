"""Bearer tokens for the administrative API surface."""

import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from zkmixer.utils.encoding import normalize_address

ALGORITHM = "HS256"
ADMIN_ROLE = "admin"
ACCESS_TOKEN_EXPIRE_HOURS = 24


def create_access_token(address: str, secret_key: str, role: str = ADMIN_ROLE,
                        expires_delta: Optional[timedelta] = None) -> tuple[str, datetime]:
    """
    Create a JWT access token for an account address.

    Returns:
        tuple: (token, expiry_datetime)
    """
    if expires_delta is None:
        expires_delta = timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    to_encode = {
        "sub": normalize_address(address),
        "role": role,
        "exp": expire,
        "iat": now,
    }

    encoded_jwt = jwt.encode(to_encode, secret_key, algorithm=ALGORITHM)
    return encoded_jwt, expire


def verify_access_token(token: str, secret_key: str) -> Optional[Dict[str, Any]]:
    """
    Verify and decode a JWT access token.

    Returns:
        Dictionary with token payload if valid, None if invalid/expired
    """
    try:
        return jwt.decode(token, secret_key, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
