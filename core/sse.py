"""
SSE(Server-Sent Events) 수신 디코더

text/event-stream 본문을 줄 단위로 받아 이벤트 단위(SSEMessage)로 조립합니다.
- data: 여러 줄은 \\n 으로 결합
- event: 이벤트 타입 (기본 message)
- id: / retry: 필드 보관 (재연결은 하지 않음)
- ':' 로 시작하는 주석 줄 무시, 빈 줄에서 dispatch
끝에 빈 줄 없이 끊긴 이벤트는 버립니다 (브라우저 EventSource와 동일).
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass

DEFAULT_EVENT_TYPE = "message"


@dataclass
class SSEMessage:
    """디코딩된 SSE 이벤트 1건"""
    data: str
    event: str = DEFAULT_EVENT_TYPE
    id: str | None = None
    retry: int | None = None


class SSEDecoder:
    """줄 단위 SSE 디코더 (스트림 1개당 인스턴스 1개)"""

    def __init__(self) -> None:
        self._data: list[str] = []
        self._event: str | None = None
        self._retry: int | None = None
        self.last_event_id: str | None = None

    def feed_line(self, line: str) -> SSEMessage | None:
        """
        한 줄 입력. 이벤트가 완성되면 SSEMessage 반환, 아니면 None.

        Args:
            line: 줄바꿈이 제거된 한 줄 (끝의 \\r 은 허용)
        """
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data.append(value)
        elif field == "event":
            self._event = value
        elif field == "id":
            if "\0" not in value:
                self.last_event_id = value
        elif field == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> SSEMessage | None:
        if not self._data:
            self._event = None
            return None
        message = SSEMessage(
            data="\n".join(self._data),
            event=self._event or DEFAULT_EVENT_TYPE,
            id=self.last_event_id,
            retry=self._retry,
        )
        self._data = []
        self._event = None
        return message


async def iter_sse_messages(lines: AsyncIterator[str]) -> AsyncIterator[SSEMessage]:
    """줄 스트림 → SSEMessage 스트림"""
    decoder = SSEDecoder()
    async for line in lines:
        message = decoder.feed_line(line)
        if message is not None:
            yield message
