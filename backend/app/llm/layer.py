"""Responder layer — every worker's text generation goes through this boundary.

Workers never talk to a provider directly. They call a `Responder`, which
returns the generated text plus call metadata. Two implementations live here:

- AnthropicResponder: AsyncAnthropic with retry + exponential backoff
- AcknowledgeResponder: deterministic, offline; used when no API key is set
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

import anthropic

from app.config import settings

logger = logging.getLogger(__name__)


@dataclass
class ResponderReply:
    """Generated text plus metadata from one responder call."""

    content: str = ""
    model_version: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    latency_ms: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class Responder(Protocol):
    async def complete(self, system: str, prompt: str, *, role: str) -> ResponderReply:
        ...


class AcknowledgeResponder:
    """Offline responder that acknowledges every task.

    Produces a well-formed section response with no handoff and no
    escalation, so workflows run end to end without a provider.
    """

    model_version = "acknowledge-v1"

    async def complete(self, system: str, prompt: str, *, role: str) -> ResponderReply:
        task_line = prompt.splitlines()[0] if prompt else ""
        content = (
            f"ANALYSIS: {role.upper()} reviewed the request. {task_line}\n"
            f"ACTION: Proceed within {role.upper()} authority.\n"
            "DECISION: Acknowledged.\n"
            "HANDOFF: None\n"
            "ESCALATE: NO"
        )
        return ResponderReply(content=content, model_version=self.model_version)


async def _retry_with_backoff(
    coro_factory,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
):
    """Retry an async call with exponential backoff on transient API errors.

    Args:
        coro_factory: Callable that returns a new coroutine each time.
        max_retries: Maximum number of retries (0 = no retry).
        base_delay: Initial delay in seconds.
        max_delay: Maximum delay cap.

    Returns:
        The result of the successful call.
    """
    for attempt in range(max_retries + 1):
        try:
            return await coro_factory()
        except (anthropic.RateLimitError, anthropic.APIConnectionError, anthropic.InternalServerError) as e:
            if attempt >= max_retries:
                raise
            delay = min(base_delay * (2 ** attempt), max_delay)
            logger.warning(
                "Responder call attempt %d/%d failed (%s), retrying in %.1fs",
                attempt + 1, max_retries + 1, type(e).__name__, delay,
            )
            await asyncio.sleep(delay)


class AnthropicResponder:
    """Responder backed by the Anthropic Messages API."""

    def __init__(
        self,
        client: anthropic.AsyncAnthropic | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        max_retries: int = 3,
    ) -> None:
        self.client = client or anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.model = model or settings.responder_model
        self.max_tokens = max_tokens or settings.responder_max_tokens
        self.temperature = temperature if temperature is not None else settings.responder_temperature
        self.max_retries = max_retries

    async def complete(self, system: str, prompt: str, *, role: str) -> ResponderReply:
        start = time.time()
        response = await _retry_with_backoff(
            coro_factory=lambda: self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            ),
            max_retries=self.max_retries,
        )
        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
        usage = getattr(response, "usage", None)
        reply = ResponderReply(
            content=text,
            model_version=getattr(response, "model", self.model),
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            latency_ms=int((time.time() - start) * 1000),
        )
        logger.debug(
            "Responder %s for %s: %d in / %d out tokens in %dms",
            reply.model_version, role, reply.input_tokens, reply.output_tokens, reply.latency_ms,
        )
        return reply


def create_responder() -> Responder:
    """AnthropicResponder when a real API key is configured, else AcknowledgeResponder."""
    if settings.anthropic_api_key and settings.anthropic_api_key != "test":
        return AnthropicResponder()
    logger.info("No Anthropic API key configured; using acknowledging responder")
    return AcknowledgeResponder()
