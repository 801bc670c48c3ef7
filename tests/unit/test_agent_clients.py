"""Tests for concrete agent clients and the client factory.

The HTTP client is exercised with ``_post_sync`` patched out; no network.
"""

from __future__ import annotations

import json
from urllib.error import URLError

import pytest

from storyloom.client import AgentClient
from storyloom.client import AgentInvocationError
from storyloom.client import build_agent_client
from storyloom.client import drain_stream
from storyloom.client import HttpAgentClient
from storyloom.client import NoopAgentClient
from storyloom.client import parse_structured
from storyloom.client import ScriptedAgentClient
from storyloom.client import sse_done
from storyloom.client import sse_event
from storyloom.config import AgentClientConfig
from storyloom.engine.prompt_builder import MEMORY_EXTRACTION_CONTROL
from storyloom.engine.prompt_builder import NARRATIVE_PROPOSAL_CONTROL
from storyloom.presets import DEFAULT_PRESETS


class TestFactory:
    def test_builds_http_client(self):
        client = build_agent_client(AgentClientConfig())
        assert isinstance(client, HttpAgentClient)
        assert isinstance(client, AgentClient)

    def test_builds_demo_client(self):
        client = build_agent_client(AgentClientConfig(provider=" Demo "))
        assert isinstance(client, ScriptedAgentClient)

    def test_builds_noop_client(self):
        assert isinstance(
            build_agent_client(AgentClientConfig(provider="noop")), NoopAgentClient
        )

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Supported providers: http, demo, noop"):
            build_agent_client(AgentClientConfig(provider="carrier-pigeon"))


class TestNoopClient:
    async def test_act_reports_no_memory(self):
        client = NoopAgentClient()
        text = await drain_stream(client.act("t", "m", MEMORY_EXTRACTION_CONTROL))
        assert parse_structured(text) == {"has_memory": False}

    async def test_chat_is_empty(self):
        assert await drain_stream(NoopAgentClient().chat("t", "m")) == ""


class TestScriptedClient:
    async def test_extraction_answer(self):
        client = ScriptedAgentClient(DEFAULT_PRESETS, chunk_size=5)
        text = await drain_stream(
            client.act("demo-local", "Theme: x", MEMORY_EXTRACTION_CONTROL)
        )
        data = parse_structured(text)
        preset = DEFAULT_PRESETS.get("demo-local")
        assert data["has_memory"] is True
        assert data["memory_title"] == preset.title
        assert data["memory_content"] == preset.content

    async def test_proposal_answer(self):
        client = ScriptedAgentClient(DEFAULT_PRESETS)
        text = await drain_stream(
            client.act("demo-artist", "digest", NARRATIVE_PROPOSAL_CONTROL)
        )
        assert parse_structured(text)["proposed_position"] == "climax"

    async def test_chat_returns_refined_content(self):
        client = ScriptedAgentClient(DEFAULT_PRESETS)
        text = await drain_stream(client.chat("demo-techie", "weave please"))
        assert text == DEFAULT_PRESETS.get("demo-techie").refined_content

    async def test_unknown_token_is_unauthorized(self):
        client = ScriptedAgentClient(DEFAULT_PRESETS)
        with pytest.raises(AgentInvocationError, match="401"):
            await drain_stream(client.chat("stranger", "hi"))


class TestHttpClient:
    async def test_act_posts_action_control(self, monkeypatch):
        client = HttpAgentClient(base_url="https://agents.example/")
        seen: list[tuple[str, str, dict]] = []

        def fake_post(path, token, payload):
            seen.append((path, token, payload))
            return [sse_event('{"has_memory": false}'), sse_done()]

        monkeypatch.setattr(client, "_post_sync", fake_post)

        text = await drain_stream(client.act("tok", "Theme: x", "CONTROL"))

        assert json.loads(text) == {"has_memory": False}
        assert seen == [
            (
                "/api/secondme/act/stream",
                "tok",
                {"message": "Theme: x", "actionControl": "CONTROL"},
            )
        ]

    async def test_chat_posts_message(self, monkeypatch):
        client = HttpAgentClient(chat_path="/chat")
        seen: list[tuple[str, str, dict]] = []

        def fake_post(path, token, payload):
            seen.append((path, token, payload))
            return [sse_event("woven"), sse_done()]

        monkeypatch.setattr(client, "_post_sync", fake_post)

        assert await drain_stream(client.chat("tok", "prompt")) == "woven"
        assert seen == [("/chat", "tok", {"message": "prompt"})]

    async def test_network_error_becomes_invocation_error(self, monkeypatch):
        client = HttpAgentClient(base_url="http://127.0.0.1:9")

        def refuse(request, timeout):
            raise URLError("connection refused")

        monkeypatch.setattr("storyloom.client.adapters.urlopen", refuse)

        with pytest.raises(AgentInvocationError, match="network error"):
            await drain_stream(client.chat("tok", "prompt"))
