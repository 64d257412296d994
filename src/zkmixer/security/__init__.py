"""Security and authorization module."""

from zkmixer.security.auth import (
    ADMIN_ROLE,
    AdminCapability,
    create_admin_token,
    verify_admin_token,
)

__all__ = [
    "ADMIN_ROLE",
    "AdminCapability",
    "create_admin_token",
    "verify_admin_token",
]
