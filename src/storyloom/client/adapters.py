"""Concrete agent clients and factory helpers."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from urllib.error import HTTPError
from urllib.error import URLError
from urllib.request import Request
from urllib.request import urlopen

from storyloom.client.base import AgentClient
from storyloom.client.base import AgentInvocationError
from storyloom.client.streaming import sse_done
from storyloom.client.streaming import sse_event
from storyloom.config import AgentClientConfig
from storyloom.presets import DEFAULT_PRESETS
from storyloom.presets import PresetTable


class HttpAgentClient(AgentClient):
    """Client for the agent-hosting service's ``act`` and ``chat`` stream endpoints."""

    def __init__(
        self,
        *,
        base_url: str = "https://app.mindos.com/gate/lab",
        act_path: str = "/api/secondme/act/stream",
        chat_path: str = "/api/secondme/chat/stream",
        timeout_seconds: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._act_path = act_path
        self._chat_path = chat_path
        self._timeout_seconds = timeout_seconds

    async def act(
        self,
        access_token: str,
        message: str,
        action_control: str,
    ) -> AsyncIterator[str]:
        payload = {"message": message, "actionControl": action_control}
        for line in await asyncio.to_thread(
            self._post_sync, self._act_path, access_token, payload
        ):
            yield line

    async def chat(self, access_token: str, message: str) -> AsyncIterator[str]:
        payload = {"message": message}
        for line in await asyncio.to_thread(
            self._post_sync, self._chat_path, access_token, payload
        ):
            yield line

    def _post_sync(self, path: str, access_token: str, payload: dict) -> list[str]:
        request = Request(
            url=f"{self._base_url}{path}",
            data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
                "Accept": "text/event-stream",
            },
            method="POST",
        )
        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                return [
                    raw.decode("utf-8", errors="replace") for raw in response
                ]
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise AgentInvocationError(
                f"agent service HTTP {exc.code}: {detail[:200]}"
            ) from exc
        except URLError as exc:
            raise AgentInvocationError(
                f"agent service network error: {exc.reason}"
            ) from exc
        except OSError as exc:
            raise AgentInvocationError(f"agent service IO error: {exc}") from exc


class NoopAgentClient(AgentClient):
    """Deterministic client: no agent ever has a memory, chat answers are empty."""

    async def act(
        self,
        access_token: str,
        message: str,
        action_control: str,
    ) -> AsyncIterator[str]:
        del access_token, message, action_control
        yield sse_event('{"has_memory": false}')
        yield sse_done()

    async def chat(self, access_token: str, message: str) -> AsyncIterator[str]:
        del access_token, message
        yield sse_done()


class ScriptedAgentClient(AgentClient):
    """Answers every call from a preset table, keyed by access token.

    Demo agents carry their agent id as access token. Answers are split
    into small SSE events so draining behaves as with a live service.
    Unknown tokens fail like an unauthorized call would.
    """

    def __init__(
        self,
        presets: PresetTable = DEFAULT_PRESETS,
        *,
        chunk_size: int = 24,
        delay_seconds: float = 0.0,
    ) -> None:
        self._presets = presets
        self._chunk_size = chunk_size
        self._delay_seconds = delay_seconds

    def _preset(self, access_token: str):
        preset = self._presets.get(access_token)
        if preset is None:
            raise AgentInvocationError("agent service HTTP 401: unknown token")
        return preset

    async def _emit(self, text: str) -> AsyncIterator[str]:
        if self._delay_seconds:
            await asyncio.sleep(self._delay_seconds)
        for i in range(0, len(text), self._chunk_size):
            yield sse_event(text[i : i + self._chunk_size])
        yield sse_done()

    async def act(
        self,
        access_token: str,
        message: str,
        action_control: str,
    ) -> AsyncIterator[str]:
        del message
        preset = self._preset(access_token)
        if "proposed_position" in action_control:
            answer = {
                "proposed_position": preset.proposed_position,
                "reason": preset.reason,
                "connection_to_others": preset.connection_note,
                "transition_suggestion": preset.transition_hint,
            }
        else:
            answer = {
                "has_memory": True,
                "memory_title": preset.title,
                "memory_content": preset.content,
                "emotion": preset.emotion,
                "time_hint": preset.time_hint,
                "unique_detail": preset.unique_detail,
            }
        async for line in self._emit(json.dumps(answer, ensure_ascii=False)):
            yield line

    async def chat(self, access_token: str, message: str) -> AsyncIterator[str]:
        del message
        preset = self._preset(access_token)
        async for line in self._emit(preset.refined_content or preset.content):
            yield line


def build_agent_client(
    config: AgentClientConfig,
    *,
    presets: PresetTable = DEFAULT_PRESETS,
) -> AgentClient:
    """Create a concrete client from ``AgentClientConfig``."""

    provider = config.provider.strip().lower()
    if provider == "http":
        return HttpAgentClient(
            base_url=config.base_url,
            act_path=config.act_path,
            chat_path=config.chat_path,
            timeout_seconds=config.timeout_seconds,
        )
    if provider == "demo":
        return ScriptedAgentClient(presets)
    if provider == "noop":
        return NoopAgentClient()
    raise ValueError(
        f"Unsupported agent_client.provider '{config.provider}'. "
        "Supported providers: http, demo, noop."
    )
