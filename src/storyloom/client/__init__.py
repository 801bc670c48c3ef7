"""Agent invocation — clients, SSE draining, structured-output parsing."""

from storyloom.client.adapters import build_agent_client
from storyloom.client.adapters import HttpAgentClient
from storyloom.client.adapters import NoopAgentClient
from storyloom.client.adapters import ScriptedAgentClient
from storyloom.client.base import AgentClient
from storyloom.client.base import AgentInvocationError
from storyloom.client.streaming import drain_stream
from storyloom.client.streaming import parse_structured
from storyloom.client.streaming import sse_done
from storyloom.client.streaming import sse_event
from storyloom.client.streaming import StructuredOutputError

__all__ = [
    "AgentClient",
    "AgentInvocationError",
    "HttpAgentClient",
    "NoopAgentClient",
    "ScriptedAgentClient",
    "StructuredOutputError",
    "build_agent_client",
    "drain_stream",
    "parse_structured",
    "sse_done",
    "sse_event",
]
