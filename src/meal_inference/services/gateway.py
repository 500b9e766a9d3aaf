"""Model gateway: the only component that calls the language model."""

import asyncio
import base64
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from meal_inference.domain.analysis import Modality, RawModelReply
from meal_inference.domain.errors import RateLimited, RequestRejected, TransportError
from meal_inference.services.prompts import Prompt

_logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    """Interface for a hosted completion endpoint."""

    async def complete(  # noqa: PLR0913
        self,
        *,
        model: str,
        system_prompt: str,
        user_prompt: str,
        image_data_url: str | None,
        max_tokens: int,
        temperature: float,
    ) -> str:
        """Return the completion text for one request."""


@dataclass
class ModelGateway:
    """Issue completions with a token budget, a timeout and bounded retries."""

    client: CompletionClient
    text_model: str
    vision_model: str
    max_tokens: int = 1000
    temperature: float = 0.3
    timeout_seconds: float = 30.0
    max_retries: int = 2
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 8.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def complete(
        self, prompt: Prompt, modality: Modality, media: bytes | None = None
    ) -> RawModelReply:
        """Run one completion, retrying transport and rate-limit failures."""
        image_data_url = _prepare_media(modality, media)
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=RetryAfterWait(
                fallback=wait_exponential(
                    multiplier=self.backoff_base_seconds,
                    max=self.backoff_max_seconds,
                ),
                max_seconds=self.backoff_max_seconds,
            ),
            retry=retry_if_exception_type((TransportError, RateLimited)),
            sleep=self.sleep,
            before_sleep=before_sleep_log(_logger, logging.WARNING),
            reraise=True,
        )
        text = ""
        async for attempt in retrying:
            with attempt:
                text = await self._call_once(prompt, modality, image_data_url)
        return RawModelReply(text=text, modality=modality)

    async def _call_once(
        self, prompt: Prompt, modality: Modality, image_data_url: str | None
    ) -> str:
        model = self.vision_model if modality is Modality.IMAGE else self.text_model
        temperature = (
            prompt.temperature if prompt.temperature is not None else self.temperature
        )
        try:
            async with asyncio.timeout(self.timeout_seconds):
                return await self.client.complete(
                    model=model,
                    system_prompt=prompt.system,
                    user_prompt=prompt.user,
                    image_data_url=image_data_url,
                    max_tokens=self.max_tokens,
                    temperature=temperature,
                )
        except TimeoutError as exc:
            raise TransportError(
                f"Completion timed out after {self.timeout_seconds}s"
            ) from exc


@dataclass
class RetryAfterWait:
    """Wait as long as the provider asked, otherwise back off exponentially."""

    fallback: wait_base
    max_seconds: float

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        if isinstance(error, RateLimited) and error.retry_after is not None:
            return min(max(error.retry_after, 0.0), self.max_seconds)
        return self.fallback(retry_state)


def _prepare_media(modality: Modality, media: bytes | None) -> str | None:
    if modality is Modality.TEXT:
        if media is not None:
            raise RequestRejected("Text completions do not accept media")
        return None
    if not media:
        raise RequestRejected("Image completions require image bytes")
    return _to_data_url(media)


def _to_data_url(image_bytes: bytes) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    return "image/jpeg"
