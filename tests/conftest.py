import asyncio

import pytest

from finassist.config import Settings
from finassist.main import create_app
from finassist.provider import Provider, ProviderReply


class FakeProvider(Provider):
    """In-process provider: returns `reply`, raises `error`, or sleeps `delay` seconds first."""
    name = "fake"

    def __init__(self, reply=None, error=None, delay=0.0):
        self.reply = reply if reply is not None else ProviderReply(texts=["Diversify."], usage={"tokens": {"output_tokens": 2}})
        self.error = error
        self.delay = delay
        self.calls = []

    async def chat(self, messages, *, model, temperature, max_tokens):
        self.calls.append({"messages": messages, "model": model, "temperature": temperature, "max_tokens": max_tokens})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class ProviderFailure(Exception):
    def __init__(self, message, status_code=None, body=None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@pytest.fixture
def settings():
    return Settings(cohere_api_key="test-key", request_timeout_ms=200)


@pytest.fixture
def make_app(settings):
    def _make(provider=None, **overrides):
        cfg = Settings(**{**settings.__dict__, **overrides})
        return create_app(cfg, provider or FakeProvider())
    return _make
