"""Security and authentication module."""

from zkmixer.security.auth import (
    ADMIN_ROLE,
    create_access_token,
    verify_access_token,
)

__all__ = [
    "ADMIN_ROLE",
    "create_access_token",
    "verify_access_token",
]
