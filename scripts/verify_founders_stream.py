#!/usr/bin/env python3
"""
founders mode 스트림 직접 검증 스크립트

실행 중인 게이트웨이에 메시지를 보내고, founders 세션이 시작되면
세션 SSE 스트림을 끝까지 소비하면서 이벤트 타입별로 요약합니다.

사용법:
    python scripts/verify_founders_stream.py "AI tutor for kids"
환경 변수:
    GATEWAY_URL (기본 http://localhost:9000), GATEWAY_USER_ID (기본 verify-user)
"""

import asyncio
import json
import os
import sys
from datetime import datetime
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.sse import iter_sse_messages
from core.security.auth import create_token

GATEWAY_URL = os.getenv("GATEWAY_URL", "http://localhost:9000")
USER_ID = os.getenv("GATEWAY_USER_ID", "verify-user")


def _ts() -> str:
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


async def send_message(client: httpx.AsyncClient, prompt: str) -> dict | None:
    """POST /galuxium/messages"""
    print(f"[{_ts()}] 📤 POST {GATEWAY_URL}/galuxium/messages")
    response = await client.post(f"{GATEWAY_URL}/galuxium/messages", json={"message": prompt})
    if response.status_code == 200:
        print(f"💬 chat 응답: {response.json().get('reply')}")
        return None
    if response.status_code != 202:
        print(f"❌ 요청 실패: {response.status_code}")
        print(response.text)
        sys.exit(1)
    data = response.json()
    print(f"✅ founders 세션 시작: session_id={data['session_id']}")
    print(f"   stream_path={data['stream_path']}")
    return data


async def consume_stream(client: httpx.AsyncClient, stream_path: str) -> None:
    """세션 SSE 스트림 소비"""
    url = f"{GATEWAY_URL}{stream_path}"
    print(f"\n[{_ts()}] 📡 GET {url}")
    print("=" * 80)

    events_by_type: dict[str, int] = {}
    async with client.stream("GET", url, timeout=httpx.Timeout(30.0, read=300.0)) as response:
        if response.status_code != 200:
            print(f"❌ 스트림 연결 실패: {response.status_code}")
            print(await response.aread())
            return

        async for message in iter_sse_messages(response.aiter_lines()):
            if message.data == "[DONE]":
                print(f"🏁 [DONE] 수신 - 스트림 종료")
                break
            events_by_type[message.event] = events_by_type.get(message.event, 0) + 1
            try:
                data = json.loads(message.data)
            except json.JSONDecodeError:
                print(f"⚠️  JSON 파싱 실패: {message.data[:100]}")
                continue

            print(f"[{_ts()}] 📨 event: {message.event} (id={message.id})")
            if message.event == "agent_update":
                agent = data.get("agent", {})
                print(f"   └─ {agent.get('phase')}: progress={agent.get('progress')} messages={len(agent.get('messages', []))}")
            elif message.event == "notification":
                print(f"   └─ [{data.get('category')}] {data.get('message')}")
            elif message.event in ("status", "end"):
                print(f"   └─ status: {data.get('status')} {data.get('reason') or ''}")
            elif message.event == "report":
                print(f"   └─ uploads: {data.get('uploads')}")

    print("=" * 80)
    print("📊 이벤트 타입별 수신 횟수")
    for event_type, count in sorted(events_by_type.items()):
        print(f"   {event_type}: {count}")


async def main() -> None:
    prompt = sys.argv[1] if len(sys.argv) > 1 else "An AI tutor that adapts to each kid's learning pace"
    headers = {"Authorization": f"Bearer {create_token(user_id=USER_ID)}"}
    async with httpx.AsyncClient(timeout=30.0, headers=headers) as client:
        started = await send_message(client, prompt)
        if started:
            await consume_stream(client, started["stream_path"])


if __name__ == "__main__":
    asyncio.run(main())
