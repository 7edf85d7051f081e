"""
Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and provides common fixtures
and configuration for all test modules.
"""

import sys
import json
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import httpx
import pytest

from epub_translator.config import TranslationConfig
from epub_translator.core.llm.client import TranslationClient
from epub_translator.core.llm.retry_policy import RetryPolicy

API_ENDPOINT = "https://translation.test/v1/chat/completions"


def completion_body(content: str) -> dict:
    """Minimal chat-completion response body"""
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


class FakeService:
    """Scripted translation service for httpx.MockTransport.

    Each scripted step is either an int (status code with an error body), an
    httpx.Response, an exception instance to raise, or a callable taking the
    request. Once the script is used up, `default` is applied to every
    further request.
    """

    def __init__(self, steps=None, default=None):
        self.steps = list(steps or [])
        self.default = default
        self.requests = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    def user_contents(self):
        return [json.loads(r.content)["messages"][1]["content"] for r in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self.steps.pop(0) if self.steps else self.default
        if step is None:
            raise AssertionError("FakeService received an unexpected request")
        if isinstance(step, Exception):
            raise step
        if isinstance(step, int):
            return httpx.Response(step, json={"error": {"message": "scripted failure"}})
        if isinstance(step, httpx.Response):
            return step
        return step(request)

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def echo_translation(prefix: str = "DE:"):
    """Step that answers every request with a prefixed copy of its content"""
    def respond(request: httpx.Request) -> httpx.Response:
        content = json.loads(request.content)["messages"][1]["content"]
        return httpx.Response(200, json=completion_body(f"  {prefix}{content}\n"))
    return respond


class RecordingSleep:
    """Async no-op sleep that records every requested delay"""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_client(sleep):
    """Factory building a TranslationClient bound to a FakeService"""
    def factory(service: FakeService, base_delay: float = 2.0, max_retries: int = 3, **kwargs):
        return TranslationClient(
            api_endpoint=API_ENDPOINT,
            api_key="test-key",
            model="gemini-test",
            retry_policy=RetryPolicy(base_delay=base_delay, max_retries=max_retries),
            http_client=service.http_client(),
            sleep=sleep,
            **kwargs
        )
    return factory


@pytest.fixture
def config():
    return TranslationConfig(
        api_key="test-key",
        api_endpoint=API_ENDPOINT,
        model="gemini-test",
        target_language="German",
        retry_delay=2.0,
        max_retries=3,
        pacing_delay=0.5,
    )


@pytest.fixture
def sample_xhtml() -> bytes:
    """Small namespaced XHTML chapter"""
    return (
        b'<?xml version="1.0" encoding="utf-8"?>\n'
        b'<!DOCTYPE html>\n'
        b'<html xmlns="http://www.w3.org/1999/xhtml" xmlns:epub="http://www.idpf.org/2007/ops">\n'
        b'<head><title>Chapter 1</title><style>p { margin: 0; }</style></head>\n'
        b'<body>\n'
        b'<h1 class="chapter">Chapter One</h1>\n'
        b'<p id="p1">Hello <em>world</em></p>\n'
        b'<p>   </p>\n'
        b'<div class="note"><span epub:type="footnote">A note</span> tail text</div>\n'
        b'</body>\n'
        b'</html>\n'
    )


@pytest.fixture
def fake_service():
    """The FakeService class, for building scripted services in tests"""
    return FakeService


@pytest.fixture
def completion():
    """Builder for chat-completion response bodies"""
    return completion_body


@pytest.fixture
def echo():
    """Builder for a step that echoes the request content with a prefix"""
    return echo_translation
