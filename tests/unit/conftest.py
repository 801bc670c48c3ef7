"""Unit test fixtures — fresh in-memory repositories per test."""

from __future__ import annotations

import pytest

from storyloom.audit import AuditLogger
from storyloom.config import AuditConfig
from storyloom.observability import LatencyRecorder
from storyloom.repository import InMemoryAgentDirectory
from storyloom.repository import InMemoryStoryRepository


@pytest.fixture()
def stories() -> InMemoryStoryRepository:
    return InMemoryStoryRepository()


@pytest.fixture()
def agents() -> InMemoryAgentDirectory:
    return InMemoryAgentDirectory()


@pytest.fixture()
def metrics() -> LatencyRecorder:
    return LatencyRecorder()


@pytest.fixture()
def audit_logger(tmp_path) -> AuditLogger:
    return AuditLogger(AuditConfig(file_path=str(tmp_path / "audit.jsonl")))
