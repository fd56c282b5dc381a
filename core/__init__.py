"""
Galuxium Gateway Core Module

공통 핵심 로직을 제공하는 모듈:
- 전역 설정 및 요청 컨텍스트
- 프롬프트 분류 / 일반 채팅 클라이언트
- founders mode 오케스트레이션 스트림 집계
- 보안 및 인증
"""

from core.config import settings

__all__ = ["settings"]
