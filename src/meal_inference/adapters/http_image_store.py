"""Image store that resolves image locators to bytes."""

import base64
import binascii
from dataclasses import dataclass

import httpx

from meal_inference.domain.errors import RequestRejected, TransportError
from meal_inference.services.pipeline import ImageStore


@dataclass
class HttpxImageStore(ImageStore):
    """Fetch already-stored images over HTTP, or decode inline data URLs."""

    http_client: httpx.AsyncClient
    base_url: str | None = None
    timeout_seconds: float = 20.0

    @classmethod
    def create(cls, base_url: str | None = None) -> "HttpxImageStore":
        """Create an image store with a managed httpx session."""
        return cls(http_client=httpx.AsyncClient(), base_url=base_url)

    async def fetch(self, locator: str) -> bytes:
        """Return the image bytes a locator points to."""
        if locator.startswith("data:"):
            return _decode_data_url(locator)
        url = self._resolve(locator)
        try:
            response = await self.http_client.get(url, timeout=self.timeout_seconds)
        except httpx.HTTPError as exc:
            raise TransportError(f"Image download failed: {exc}") from exc
        if response.status_code >= 500:
            raise TransportError(f"Image store error (status={response.status_code})")
        if response.status_code >= 400:
            raise RequestRejected(
                f"Image not available (status={response.status_code})"
            )
        if not response.content:
            raise RequestRejected("Image is empty")
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    def _resolve(self, locator: str) -> str:
        if locator.startswith(("http://", "https://")):
            return locator
        if self.base_url is None:
            raise RequestRejected(f"Cannot resolve image locator: {locator}")
        return f"{self.base_url.rstrip('/')}/{locator.lstrip('/')}"


def _decode_data_url(locator: str) -> bytes:
    header, _, encoded = locator.partition(",")
    if not header.endswith(";base64") or not encoded:
        raise RequestRejected("Unsupported data URL")
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise RequestRejected("Malformed base64 image data") from exc
    if not data:
        raise RequestRejected("Image is empty")
    return data
