"""
Security Module

JWT 기반 인증 관련 기능을 제공합니다.
"""

from core.security.auth import (
    TokenPayload,
    User,
    AuthService,
    get_auth_service,
    create_token,
    get_user_from_token,
    extract_bearer_token,
)

__all__ = [
    "TokenPayload",
    "User",
    "AuthService",
    "get_auth_service",
    "create_token",
    "get_user_from_token",
    "extract_bearer_token",
]
