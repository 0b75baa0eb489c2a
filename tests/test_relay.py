import asyncio

import pytest

from finassist.errors import AuthError, InternalError, QuotaExceeded, RequestTimeout
from finassist.provider import ProviderReply
from finassist.relay import MAX_TOKENS, MODEL_ID, SYSTEM_PROMPT, TEMPERATURE, PromptRelay, build_messages
from tests.conftest import FakeProvider, ProviderFailure


def test_build_messages_prepends_persona():
    messages = build_messages("What is an ETF?")
    assert messages == [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": "What is an ETF?"},
    ]
    assert "financial assistant" in SYSTEM_PROMPT


@pytest.mark.asyncio
async def test_relay_returns_first_text_item():
    provider = FakeProvider(reply=ProviderReply(texts=["first", "second"], usage={"billed_units": {"input_tokens": 5}}))
    relay = PromptRelay(provider, timeout_ms=1000)

    resp = await relay.relay("What is a diversified portfolio?")

    assert resp.content == "first"
    assert resp.metadata.model == MODEL_ID
    assert resp.metadata.response_time >= 0
    assert resp.metadata.usage == {"billed_units": {"input_tokens": 5}}
    assert resp.metadata.timestamp.endswith("Z")

    call = provider.calls[0]
    assert call["model"] == MODEL_ID
    assert call["temperature"] == TEMPERATURE
    assert call["max_tokens"] == MAX_TOKENS
    assert call["messages"][1]["content"] == "What is a diversified portfolio?"


@pytest.mark.asyncio
@pytest.mark.parametrize("texts", [None, []])
async def test_relay_rejects_missing_content(texts):
    relay = PromptRelay(FakeProvider(reply=ProviderReply(texts=texts)), timeout_ms=1000)

    with pytest.raises(InternalError) as info:
        await relay.relay("hi")
    assert info.value.message.startswith("Invalid response format from Cohere API")


@pytest.mark.asyncio
async def test_relay_times_out_before_slow_provider():
    provider = FakeProvider(delay=0.5)
    relay = PromptRelay(provider, timeout_ms=50)

    with pytest.raises(RequestTimeout):
        await relay.relay("hi")


@pytest.mark.asyncio
async def test_late_failure_after_timeout_is_discarded(caplog):
    provider = FakeProvider(delay=0.1, error=ProviderFailure("nope", status_code=401))
    relay = PromptRelay(provider, timeout_ms=20)

    with pytest.raises(RequestTimeout):
        await relay.relay("hi")
    # let the abandoned call finish
    await asyncio.sleep(0.2)
    assert not [r for r in caplog.records if "never retrieved" in r.getMessage()]


@pytest.mark.asyncio
async def test_provider_errors_are_classified():
    relay = PromptRelay(FakeProvider(error=ProviderFailure("too many", status_code=429)), timeout_ms=1000)
    with pytest.raises(QuotaExceeded) as info:
        await relay.relay("hi")
    assert info.value.__cause__ is relay.provider.error

    relay = PromptRelay(FakeProvider(error=ProviderFailure("bad key", status_code=401)), timeout_ms=1000)
    with pytest.raises(AuthError):
        await relay.relay("hi")


@pytest.mark.asyncio
async def test_timeout_sentinel_from_provider():
    relay = PromptRelay(FakeProvider(error=ProviderFailure("Request timeout")), timeout_ms=1000)
    with pytest.raises(RequestTimeout):
        await relay.relay("hi")
