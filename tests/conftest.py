"""Shared pytest fixtures."""

from __future__ import annotations

import logging
from types import SimpleNamespace
from typing import Any, Iterable

import pytest

from shield_ai.llm.openai_client import OpenAIClient


SAMPLE = "line1\nline2\nline3\nline4\nline5\n"


class FakeResponses:
    """Stands in for ``OpenAI().responses``; replies with canned texts."""

    def __init__(self, texts: Iterable[str]):
        self.texts = list(texts)
        self.calls: list[dict[str, Any]] = []

    def create(self, **kwargs: Any) -> SimpleNamespace:
        self.calls.append(kwargs)
        text = self.texts.pop(0)
        block = SimpleNamespace(type="output_text", text=text)
        return SimpleNamespace(output=[SimpleNamespace(content=[block])])


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "app.py"
    path.write_text(SAMPLE, encoding="utf-8")
    return path


@pytest.fixture
def make_client():
    """Build an OpenAIClient whose SDK calls return the given texts."""

    def factory(*texts: str) -> tuple[OpenAIClient, FakeResponses]:
        client = OpenAIClient(api_key="sk-test")
        fake = FakeResponses(texts)
        client.client = SimpleNamespace(responses=fake)
        return client, fake

    return factory


@pytest.fixture
def quiet_logger():
    logger = logging.getLogger("shield_ai.tests")
    logger.handlers.clear()
    logger.addHandler(logging.NullHandler())
    logger.propagate = False
    return logger
