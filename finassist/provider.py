from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import cohere
from fastapi.encoders import jsonable_encoder


@dataclass
class ProviderReply:
    # None when the provider answered without a message body
    texts: list[str] | None
    usage: dict[str, Any] = field(default_factory=dict)


class Provider(ABC):
    name = "unknown"

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, str]],
        *,
        model: str,
        temperature: float,
        max_tokens: int,
    ) -> ProviderReply:
        pass


class CohereProvider(Provider):
    """Cohere-backed chat provider using the async v2 Chat API."""
    name = "cohere"

    def __init__(self, api_key: str) -> None:
        self._client = cohere.AsyncClientV2(api_key=api_key)

    async def chat(self, messages, *, model, temperature, max_tokens):
        response = await self._client.chat(
            model=model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )

        message = getattr(response, "message", None)
        content = getattr(message, "content", None)
        texts = None
        if content:
            # only text items; thinking or tool items never reach the caller
            texts = [item.text for item in content if getattr(item, "type", None) == "text"]

        usage = jsonable_encoder(response.usage) if getattr(response, "usage", None) else {}
        return ProviderReply(texts=texts, usage=usage)
