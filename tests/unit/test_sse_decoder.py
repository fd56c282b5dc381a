"""
SSE 디코더 단위 테스트
"""

import pytest

from core.sse import SSEDecoder, SSEMessage, iter_sse_messages


def _decode(lines: list[str]) -> list[SSEMessage]:
    decoder = SSEDecoder()
    messages = []
    for line in lines:
        message = decoder.feed_line(line)
        if message is not None:
            messages.append(message)
    return messages


def test_single_data_line():
    (message,) = _decode(['data: {"phase": "BizMind"}', ""])
    assert message.data == '{"phase": "BizMind"}'
    assert message.event == "message"
    assert message.id is None


def test_multiline_data_is_joined_with_newline():
    (message,) = _decode(["data: first", "data: second", ""])
    assert message.data == "first\nsecond"


def test_comments_and_unknown_fields_are_ignored():
    messages = _decode([": keepalive", "", "foo: bar", "data: x", ""])
    assert [m.data for m in messages] == ["x"]


def test_event_id_and_retry_fields():
    (message,) = _decode(["id: 7", "event: heartbeat", "retry: 3000", "data: ping", ""])
    assert message.event == "heartbeat"
    assert message.id == "7"
    assert message.retry == 3000


def test_event_type_resets_between_messages_but_id_persists():
    first, second = _decode(["event: custom", "id: 1", "data: a", "", "data: b", ""])
    assert first.event == "custom"
    assert second.event == "message"
    assert second.id == "1"


def test_value_without_leading_space_and_crlf():
    (message,) = _decode(["data:compact\r", "\r"])
    assert message.data == "compact"


def test_blank_line_without_data_dispatches_nothing():
    assert _decode(["", "event: noop", ""]) == []


def test_trailing_event_without_blank_line_is_dropped():
    assert _decode(["data: complete", "", "data: partial"]) == [SSEMessage(data="complete")]


@pytest.mark.asyncio
async def test_iter_sse_messages_from_async_lines():
    async def lines():
        for line in ['data: {"a": 1}', "", ": comment", 'data: {"b": 2}', ""]:
            yield line

    messages = [m async for m in iter_sse_messages(lines())]
    assert [m.data for m in messages] == ['{"a": 1}', '{"b": 2}']
