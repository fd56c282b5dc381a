"""
Core Configuration Module

환경변수 및 전역 설정을 관리하는 모듈.
Pydantic Settings를 사용하여 타입 안전성과 검증을 보장합니다.
"""

from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    애플리케이션 전역 설정 클래스

    환경변수에서 값을 로드하며, .env 파일을 지원합니다.
    모든 설정은 타입 안전하며 자동으로 검증됩니다.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_prefix="",
    )

    # ==================== Application Configuration ====================
    app_env: str = Field(
        default="development",
        description="애플리케이션 환경 (development, staging, production)"
    )
    app_name: str = Field(
        default="Galuxium-Gateway",
        description="애플리케이션 이름"
    )
    app_version: str = Field(
        default="0.1.0",
        description="애플리케이션 버전"
    )
    debug: bool = Field(
        default=True,
        description="디버그 모드 활성화 여부"
    )

    # ==================== API Configuration ====================
    api_host: str = Field(
        default="0.0.0.0",
        description="API 서버 호스트"
    )
    api_port: int = Field(
        default=9000,
        gt=0,
        lt=65536,
        description="API 서버 포트"
    )
    api_reload: bool = Field(
        default=True,
        description="자동 리로드 활성화 (개발 모드용)"
    )
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000"],
        description="CORS 허용 Origin (Galuxium 대시보드)"
    )

    # ==================== Galuxium Backend ====================
    galuxium_backend_url: str = Field(
        default="http://localhost:5000",
        description="외부 Galuxium API 서버 Base URL (orchestrator, report, chat)",
    )
    orchestrator_path: str = Field(
        default="/api/orchestrator",
        description="멀티 에이전트 오케스트레이션 SSE 엔드포인트",
    )
    report_generate_path: str = Field(
        default="/api/report/generate",
        description="리포트 생성 엔드포인트 (idea_id 기준)",
    )
    classify_path: str = Field(
        default="/api/idea/classify",
        description="스타트업 아이디어 분류 엔드포인트",
    )
    chat_search_path: str = Field(
        default="/api/chat/search",
        description="일반 채팅 응답 엔드포인트",
    )
    chat_save_path: str = Field(
        default="/api/chat/save",
        description="채팅 메시지 저장 엔드포인트",
    )
    chat_create_path: str = Field(
        default="/api/chat/create",
        description="대화 생성 엔드포인트",
    )
    chat_list_path: str = Field(
        default="/api/chat/list",
        description="사용자 대화 목록 엔드포인트",
    )
    chat_delete_path: str = Field(
        default="/api/chat/delete",
        description="대화 삭제 엔드포인트",
    )
    chat_models_path: str = Field(
        default="/api/chat/models",
        description="채팅 모델 목록 엔드포인트",
    )
    mvp_generate_path: str = Field(
        default="/api/mvp/generate-stream",
        description="MVP 코드 생성 SSE 엔드포인트",
    )
    mvp_download_path: str = Field(
        default="/api/mvp/download",
        description="생성된 MVP 압축 파일 다운로드 경로 (/{projectName})",
    )
    mvp_idle_timeout: float = Field(
        default=300.0,
        gt=0,
        description="MVP 생성 스트림 이벤트 간 최대 대기 시간 (초)",
    )
    http_timeout: float = Field(
        default=30.0,
        gt=0,
        description="단건 HTTP 요청 타임아웃 (초)",
    )
    chat_system_prompt: str = Field(
        default=(
            "You are Galuxium, an advanced assistant that is helpful, "
            "concise, and friendly."
        ),
        description="일반 채팅 경로의 system prompt",
    )

    # ==================== Orchestration Session ====================
    orchestrator_idle_timeout: float = Field(
        default=300.0,
        gt=0,
        description="스트림 이벤트 간 최대 대기 시간 (초). 초과 시 세션 failed",
    )
    orchestrator_max_duration: float = Field(
        default=1800.0,
        gt=0,
        description="세션 전체 최대 실행 시간 (초). done 미수신 시 failed",
    )
    session_queue_size: int = Field(
        default=256,
        gt=0,
        description="세션별 대시보드 이벤트 큐 크기 (가득 차면 drop)",
    )
    session_retention_seconds: float = Field(
        default=600.0,
        ge=0,
        description="종료된 세션 스냅샷 보관 시간 (초)",
    )

    # ==================== Hosted Database (Supabase) ====================
    supabase_url: str = Field(
        default="http://localhost:54321",
        description="Supabase 프로젝트 URL (PostgREST: /rest/v1)",
    )
    supabase_service_key: str | None = Field(
        default=None,
        description="Supabase service role key (로그 insert용)",
    )
    orchestration_log_table: str = Field(
        default="orchestration_logs",
        description="오케스트레이션 로그 저장 테이블",
    )

    # ==================== Redis Configuration ====================
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis 서버 URL"
    )
    redis_max_connections: int = Field(
        default=10,
        gt=0,
        description="Redis 최대 연결 수"
    )
    notifications_redis_enabled: bool = Field(
        default=False,
        description="알림(toast)을 Redis 채널로도 발행할지 여부",
    )
    notifications_channel: str = Field(
        default="galuxium:toast",
        description="알림 발행 Redis 채널",
    )

    # ==================== Security Configuration ====================
    # Supabase access token 검증용 (프로젝트 JWT secret)
    jwt_secret: str | None = Field(
        default=None,
        description="JWT 서명 검증 키 (Supabase JWT secret, 최소 32바이트)"
    )
    algorithm: str = Field(
        default="HS256",
        description="JWT 알고리즘"
    )
    jwt_audience: str | None = Field(
        default="authenticated",
        description="JWT aud 클레임 (Supabase 기본값: authenticated). None이면 검증 안 함",
    )
    access_token_expire_minutes: int = Field(
        default=60,
        gt=0,
        description="테스트/개발용 토큰 만료 시간 (분)"
    )
    require_auth: bool = Field(
        default=True,
        description="JWT 인증 필수 여부 (개발 시 false 가능)"
    )

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """require_auth가 켜져 있으면 JWT_SECRET(최소 32바이트)이 필수입니다."""
        if not self.require_auth:
            return self

        if not self.jwt_secret:
            raise ValueError(
                "JWT_SECRET environment variable is required when REQUIRE_AUTH is true"
            )

        if len(self.jwt_secret) < 32:
            raise ValueError(
                f"JWT_SECRET must be at least 32 bytes (current: {len(self.jwt_secret)} bytes). "
                "For HS256 algorithm, 256-bit (32-byte) key is required."
            )

        return self

    # ==================== Logging Configuration ====================
    log_level: str = Field(
        default="INFO",
        description="로그 레벨 (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """애플리케이션 환경 검증"""
        allowed_envs = {"development", "staging", "production"}
        if v.lower() not in allowed_envs:
            raise ValueError(f"app_env must be one of {allowed_envs}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """로그 레벨 검증"""
        allowed_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed_levels:
            raise ValueError(f"log_level must be one of {allowed_levels}")
        return v_upper

    @field_validator("galuxium_backend_url", "supabase_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Base URL 끝의 / 제거 (경로 결합 시 // 방지)"""
        return v.rstrip("/")

    @property
    def supabase_rest_url(self) -> str:
        """PostgREST Base URL"""
        return f"{self.supabase_url}/rest/v1"

    @property
    def supabase_headers(self) -> dict[str, str]:
        """PostgREST 호출 공통 헤더 (service key 기반)"""
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.supabase_service_key:
            headers["apikey"] = self.supabase_service_key
            headers["Authorization"] = f"Bearer {self.supabase_service_key}"
        return headers

    @property
    def session_config(self) -> dict[str, Any]:
        """오케스트레이션 세션 설정을 딕셔너리로 반환"""
        return {
            "idle_timeout": self.orchestrator_idle_timeout,
            "max_duration": self.orchestrator_max_duration,
            "queue_size": self.session_queue_size,
            "retention_seconds": self.session_retention_seconds,
        }


@lru_cache()
def get_settings() -> Settings:
    """
    Settings 인스턴스를 반환하는 캐시된 함수

    이 함수는 애플리케이션 전체에서 단일 Settings 인스턴스를 공유합니다.
    FastAPI의 의존성 주입에서 사용됩니다.

    Returns:
        Settings 인스턴스
    """
    return Settings()


# 전역 설정 인스턴스
settings = get_settings()
