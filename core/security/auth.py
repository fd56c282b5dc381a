"""
Authentication Module

JWT 기반 인증을 구현합니다.
대시보드가 보유한 Supabase access token을 검증하고 사용자 정보를 추출합니다.
(로그인/회원가입 흐름은 Supabase가 담당하며 여기서는 검증만 수행)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.config import settings

logger = logging.getLogger(__name__)


class TokenPayload(BaseModel):
    """
    JWT 페이로드 모델

    JWT 표준에 따라 exp와 iat는 Unix timestamp (초 단위 정수)입니다.
    """
    model_config = ConfigDict(extra="ignore")

    sub: str = Field(..., description="사용자 ID (subject)")
    email: str | None = Field(None, description="이메일")
    role: str = Field(default="authenticated", description="Supabase role")
    exp: int | None = Field(None, description="만료 시간 (Unix timestamp, 초 단위)")
    iat: int | None = Field(None, description="발행 시간 (Unix timestamp, 초 단위)")

    @property
    def user_id(self) -> str:
        """사용자 ID"""
        return self.sub


class User(BaseModel):
    """사용자 정보 모델"""
    user_id: str
    email: str | None = None
    role: str = "authenticated"
    access_token: str | None = Field(default=None, repr=False)
    is_authenticated: bool = True


class AuthService:
    """
    인증 서비스 클래스

    JWT 생성(개발/테스트용), 검증 및 사용자 정보 추출을 담당합니다.
    """

    def __init__(
        self,
        secret_key: str | None = None,
        algorithm: str | None = None,
        audience: str | None = None,
    ) -> None:
        """
        AuthService 초기화

        Args:
            secret_key: JWT 서명 키 (None이면 설정의 JWT_SECRET)
            algorithm: JWT 알고리즘
            audience: aud 클레임 (None이면 설정값)
        """
        self.secret_key = secret_key or settings.jwt_secret
        self.algorithm = algorithm or settings.algorithm
        self.audience = audience or settings.jwt_audience

    def create_access_token(
        self,
        data: dict[str, Any],
        expires_delta: timedelta | None = None,
    ) -> str:
        """
        JWT Access Token 생성 (개발/테스트용)

        Args:
            data: 토큰에 포함할 데이터
            expires_delta: 만료 시간 (None이면 기본값 사용)

        Returns:
            JWT 토큰 문자열
        """
        to_encode = data.copy()
        now = datetime.now(timezone.utc)
        expire = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))

        to_encode.update({
            "exp": int(expire.timestamp()),
            "iat": int(now.timestamp()),
        })
        if self.audience and "aud" not in to_encode:
            to_encode["aud"] = self.audience

        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> TokenPayload | None:
        """
        JWT 토큰 검증 및 페이로드 추출

        jwt.decode()가 exp/aud 클레임을 검증합니다.

        Args:
            token: JWT 토큰 문자열

        Returns:
            TokenPayload 또는 None (검증 실패 시)
        """
        if not self.secret_key:
            logger.error("JWT verification skipped: JWT_SECRET not configured")
            return None
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                options={"verify_aud": bool(self.audience)},
            )
            return TokenPayload(**payload)
        except JWTError as e:
            logger.warning(f"JWT verification failed: {e}")
            return None
        except ValidationError as e:
            logger.warning(f"JWT payload rejected: {e}")
            return None

    def extract_user_from_token(self, token: str) -> User | None:
        """
        JWT 토큰에서 사용자 정보 추출

        Args:
            token: JWT 토큰 문자열

        Returns:
            User 객체 또는 None
        """
        token_payload = self.verify_token(token)

        if token_payload is None:
            return None

        return User(
            user_id=token_payload.user_id,
            email=token_payload.email,
            role=token_payload.role,
            access_token=token,
        )

    def extract_bearer_token(self, authorization: str) -> str | None:
        """
        Authorization 헤더에서 Bearer 토큰 추출

        Args:
            authorization: Authorization 헤더 값 (예: "Bearer eyJ...")

        Returns:
            토큰 문자열 또는 None
        """
        if not authorization:
            return None

        parts = authorization.split()

        if len(parts) != 2:
            logger.warning("Invalid authorization header format")
            return None

        scheme, token = parts

        if scheme.lower() != "bearer":
            logger.warning(f"Unsupported authorization scheme: {scheme}")
            return None

        return token


# 전역 AuthService 인스턴스
_auth_service: AuthService | None = None


def get_auth_service() -> AuthService:
    """
    전역 AuthService 인스턴스 반환

    Returns:
        AuthService 인스턴스
    """
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthService()
    return _auth_service


# 편의 함수들
def create_token(user_id: str, **extra: Any) -> str:
    """
    사용자 토큰 생성

    Args:
        user_id: 사용자 ID
        **extra: 추가 데이터 (email, role 등)

    Returns:
        JWT 토큰
    """
    auth = get_auth_service()
    data = {"sub": user_id, **extra}
    return auth.create_access_token(data)


def get_user_from_token(token: str) -> User | None:
    """토큰에서 사용자 정보 추출"""
    auth = get_auth_service()
    return auth.extract_user_from_token(token)


def extract_bearer_token(authorization: str) -> str | None:
    """Authorization 헤더에서 토큰 추출"""
    auth = get_auth_service()
    return auth.extract_bearer_token(authorization)
