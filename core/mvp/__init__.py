"""
MVP Module

아이디어 폼 기반 MVP 코드 생성 스트림 중계.
"""

from core.mvp.generator import (
    MvpBuildAggregator,
    MvpBuildState,
    MvpForm,
    MvpGeneratorClient,
    MvpStreamEvent,
    default_project_name,
)

__all__ = [
    "MvpBuildAggregator",
    "MvpBuildState",
    "MvpForm",
    "MvpGeneratorClient",
    "MvpStreamEvent",
    "default_project_name",
]
