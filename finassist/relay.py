"""
Prompt relay: forwards a prompt to the chat provider behind a fixed
financial-assistant persona and shapes the outcome into a ChatResponse.

The provider call races a deadline. Whichever settles first decides the
outcome; a provider call that loses the race keeps running in the
background and its result is dropped when it eventually lands.
"""

import asyncio
import logging
import time

from finassist.errors import RelayError, RequestTimeout, classify_provider_error, internal_error, utc_timestamp
from finassist.provider import Provider
from finassist.schemas import ChatMetadata, ChatResponse

logger = logging.getLogger(__name__)

MODEL_ID = "command-r-plus-08-2024"
TEMPERATURE = 0.7
MAX_TOKENS = 2048
DEFAULT_TIMEOUT_MS = 30000

SYSTEM_PROMPT = """You are a professional financial assistant with expertise in:
- Investment strategies and portfolio management
- Stock market analysis and trends
- Banking products and services
- Personal finance and budgeting
- Economic indicators and market conditions
- Cryptocurrency and digital assets
- Retirement planning and insurance
- Tax planning and financial regulations

Guidelines:
- Provide accurate, well-researched financial information
- Always include appropriate disclaimers about investment risks
- Suggest consulting with qualified financial advisors for personalized advice
- Use clear, accessible language while maintaining professional accuracy
- Cite relevant financial concepts and principles
- Stay current with market trends and economic developments

Remember: This is educational information only and not personalized financial advice."""


def build_messages(prompt: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]


def _discard_late_outcome(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    # retrieving the exception keeps asyncio from reporting it as never retrieved
    exc = task.exception()
    logger.debug(
        "Discarded provider outcome that arrived after the deadline",
        extra={"_extra": {"failed": exc is not None}},
    )


class PromptRelay:
    def __init__(
        self,
        provider: Provider,
        *,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        expose_details: bool = True,
    ) -> None:
        self.provider = provider
        self.timeout_ms = timeout_ms
        self.expose_details = expose_details

    async def relay(self, prompt: str) -> ChatResponse:
        """Send `prompt` to the provider and return its first text item.

        Raises exactly one RelayError subclass when the call fails, times
        out or comes back without content.
        """
        start = time.perf_counter()
        logger.info("Processing request", extra={"_extra": {"prompt_preview": prompt[:100]}})

        try:
            texts, usage = await self._call_with_deadline(build_messages(prompt))
            if not texts:
                raise internal_error(
                    "Invalid response format from Cohere API", expose_details=self.expose_details
                )
        except RelayError as exc:
            logger.error(
                "Chat request failed",
                extra={
                    "_extra": {
                        "code": exc.code,
                        "message": exc.message,
                        "status_code": getattr(exc.__cause__, "status_code", None),
                        "body": getattr(exc.__cause__, "body", None),
                        "response_time": _elapsed_ms(start),
                    }
                },
            )
            raise

        response_time = _elapsed_ms(start)
        logger.info("Response generated", extra={"_extra": {"response_time": response_time}})
        return ChatResponse(
            content=texts[0],
            metadata=ChatMetadata(
                response_time=response_time,
                timestamp=utc_timestamp(),
                model=MODEL_ID,
                usage=usage,
            ),
        )

    async def _call_with_deadline(self, messages):
        call = asyncio.ensure_future(
            self.provider.chat(
                messages,
                model=MODEL_ID,
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
            )
        )
        try:
            done, _ = await asyncio.wait({call}, timeout=self.timeout_ms / 1000)
        except asyncio.CancelledError:
            call.add_done_callback(_discard_late_outcome)
            raise
        if not done:
            call.add_done_callback(_discard_late_outcome)
            raise RequestTimeout()

        try:
            reply = call.result()
        except Exception as exc:
            raise classify_provider_error(exc, expose_details=self.expose_details) from exc
        return reply.texts, reply.usage


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
