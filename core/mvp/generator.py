"""
MVP Generator

아이디어 폼으로 외부 백엔드의 MVP 코드 생성을 시작하고, 생성 스트림을 중계합니다.

- GET {backend}/api/mvp/generate-stream?userId&prompt&projectName&formData  (text/event-stream)
- data: {"filename": ...}     생성된 파일 1개
- data: {"projectName": ...}  다운로드 가능 ({backend}/api/mvp/download/{projectName})
- data: {"done": true}        생성 종료
"""

import json
import logging
import re
from collections.abc import AsyncIterator
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.config import settings
from core.context import get_backend_headers
from core.http_client import stream_sse
from core.sse import DEFAULT_EVENT_TYPE

logger = logging.getLogger(__name__)

# 중계 이벤트 타입
EVENT_STARTED = "started"
EVENT_FILE = "file"
EVENT_DOWNLOAD = "download"
EVENT_DONE = "done"
EVENT_ERROR = "error"

MvpEvent = tuple[str, dict[str, Any]]


def default_project_name(idea: str) -> str:
    """아이디어 앞 3단어 → 소문자 slug (예: "AI Tutor for kids" → "ai-tutor-for")"""
    slug = "-".join(idea.split()[:3]).lower()
    return re.sub(r"[^\w\-]", "", slug, flags=re.ASCII)


class MvpForm(BaseModel):
    """MVP 생성 요청 폼"""
    idea: str = Field(..., min_length=1, description="제품 아이디어")
    industry: str | None = Field(default=None, description="산업군")
    audience: str | None = Field(default=None, description="대상 사용자")
    project_name: str | None = Field(default=None, description="프로젝트 이름 (없으면 아이디어에서 생성)")
    features: list[str] = Field(default_factory=list, description="포함할 기능 목록")

    @property
    def resolved_project_name(self) -> str:
        return self.project_name or default_project_name(self.idea)

    def form_data(self) -> dict[str, Any]:
        """백엔드 formData 쿼리 파라미터 (camelCase)"""
        return {
            "idea": self.idea,
            "industry": self.industry or "",
            "audience": self.audience or "",
            "projectName": self.project_name or "",
            "features": self.features,
        }


class MvpStreamEvent(BaseModel):
    """MVP 생성 스트림 이벤트 (SSE data 1건)"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    filename: str | None = None
    project_name: str | None = Field(default=None, alias="projectName")
    done: bool = False

    @field_validator("done", mode="before")
    @classmethod
    def coerce_done(cls, v: Any) -> Any:
        return False if v is None else v


class MvpBuildState(BaseModel):
    """생성 진행 상태"""
    project_name: str | None = None
    files: list[str] = Field(default_factory=list, description="수신 순서의 생성 파일 이름")
    download_url: str | None = None
    done: bool = False


class MvpBuildAggregator:
    """파일 목록 누적 + 다운로드 URL 구성. done 이후 이벤트는 무시."""

    def __init__(self, download_base: str) -> None:
        self._download_base = download_base.rstrip("/")
        self.state = MvpBuildState()

    def apply(self, raw: str) -> MvpStreamEvent | None:
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning("Invalid MVP stream JSON: %s data=%r", e, raw[:200])
            return None
        if not isinstance(payload, dict):
            logger.warning("MVP stream payload is not an object: %r", raw[:200])
            return None
        try:
            event = MvpStreamEvent.model_validate(payload)
        except ValidationError as e:
            logger.warning("MVP stream payload rejected: %s", e.errors(include_url=False))
            return None

        if self.state.done:
            return None
        if event.filename:
            self.state.files.append(event.filename)
        if event.project_name:
            self.state.project_name = event.project_name
            self.state.download_url = f"{self._download_base}/{quote(event.project_name, safe='')}"
        if event.done:
            self.state.done = True
        return event


class MvpGeneratorClient:
    """MVP 생성 스트림 클라이언트"""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        idle_timeout: float | None = None,
        request_timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.galuxium_backend_url).rstrip("/")
        self._idle_timeout = idle_timeout or settings.mvp_idle_timeout
        self._request_timeout = request_timeout or settings.http_timeout
        self._transport = transport

    @property
    def stream_url(self) -> str:
        return f"{self._base_url}/{settings.mvp_generate_path.lstrip('/')}"

    @property
    def download_base(self) -> str:
        return f"{self._base_url}/{settings.mvp_download_path.strip('/')}"

    async def generate(self, form: MvpForm, user_id: str) -> AsyncIterator[MvpEvent]:
        """
        생성 스트림을 소비하며 (event_type, payload)를 반환.

        started → file* / download → done. 전송 오류나 done 없는 종료는 error로 끝납니다.
        """
        project_name = form.resolved_project_name
        aggregator = MvpBuildAggregator(self.download_base)
        yield EVENT_STARTED, {"project_name": project_name}

        stream = stream_sse(
            self.stream_url,
            params={
                "userId": user_id,
                "prompt": form.idea,
                "projectName": project_name,
                "formData": json.dumps(form.form_data(), ensure_ascii=False),
            },
            headers=get_backend_headers(),
            timeout=httpx.Timeout(self._request_timeout, read=self._idle_timeout),
            transport=self._transport,
        )
        try:
            async for message in stream:
                if message.event != DEFAULT_EVENT_TYPE:
                    continue
                event = aggregator.apply(message.data)
                if event is None:
                    continue
                if event.filename:
                    yield EVENT_FILE, {"filename": event.filename, "count": len(aggregator.state.files)}
                if event.project_name:
                    yield EVENT_DOWNLOAD, {
                        "project_name": aggregator.state.project_name,
                        "download_url": aggregator.state.download_url,
                    }
                if event.done:
                    break
        except httpx.HTTPError as e:
            logger.error("MVP generation stream failed: project=%s %s", project_name, e)
            yield EVENT_ERROR, {
                "message": "Failed to connect to generation server.",
                **aggregator.state.model_dump(mode="json"),
            }
            return
        finally:
            await stream.aclose()

        if aggregator.state.done:
            logger.info("MVP generated: project=%s files=%d", project_name, len(aggregator.state.files))
            yield EVENT_DONE, aggregator.state.model_dump(mode="json")
        else:
            yield EVENT_ERROR, {
                "message": "Generation stream closed before completion",
                **aggregator.state.model_dump(mode="json"),
            }
