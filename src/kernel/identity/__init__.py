"""
Identity Core - Token verification and user lookups.
"""

from src.kernel.identity.jwt import (
    JWTManager,
    AccessTokenPayload,
    create_access_token,
    verify_access_token,
)
from src.kernel.identity.identity_service import IdentityService

__all__ = [
    "JWTManager",
    "AccessTokenPayload",
    "create_access_token",
    "verify_access_token",
    "IdentityService",
]
