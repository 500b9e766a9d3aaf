"""OpenAI chat completions client for meal analysis."""

from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from meal_inference.domain.errors import RateLimited, RequestRejected, TransportError
from meal_inference.services.gateway import CompletionClient


@dataclass
class OpenAICompletionClient(CompletionClient):
    """Completion client backed by the OpenAI chat completions API."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str) -> "OpenAICompletionClient":
        """Create a client; retries are owned by the gateway, not the SDK."""
        return cls(client=AsyncOpenAI(api_key=api_key, max_retries=0))

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
        """Issue one chat completion and return its text."""
        user_content: str | list[dict[str, object]] = user_prompt
        if image_data_url is not None:
            user_content = [
                {"type": "text", "text": user_prompt},
                {
                    "type": "image_url",
                    "image_url": {"url": image_data_url, "detail": "high"},
                },
            ]
        try:
            response = await self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.RateLimitError as exc:
            raise RateLimited(
                "OpenAI rate limit reached", retry_after=_retry_after(exc)
            ) from exc
        except openai.APIConnectionError as exc:
            raise TransportError(f"OpenAI connection failed: {exc}") from exc
        except openai.InternalServerError as exc:
            raise TransportError(
                f"OpenAI server error (status={exc.status_code})"
            ) from exc
        except openai.APIStatusError as exc:
            raise RequestRejected(
                f"OpenAI rejected the request (status={exc.status_code})"
            ) from exc

        if not response.choices:
            raise TransportError("OpenAI returned no choices")
        content = response.choices[0].message.content
        if not content:
            raise TransportError("OpenAI returned an empty response")
        return content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()


def _retry_after(exc: openai.APIStatusError) -> float | None:
    """Read the Retry-After header from a rate-limit response, if present."""
    raw = exc.response.headers.get("retry-after")
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None
