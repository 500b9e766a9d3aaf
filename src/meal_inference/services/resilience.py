"""Fail-fast guard around the remote product database."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Protocol

import httpx
from circuitbreaker import CircuitBreaker, CircuitBreakerError

from meal_inference.domain.errors import DependencyUnavailable, TransportError

_logger = logging.getLogger(__name__)


class ProductDatabaseClient(Protocol):
    """Interface for the remote product database transport."""

    async def search_products(
        self, query: str, page_size: int = 1
    ) -> dict[str, object]:
        """Search products by free text and return raw API data."""


def build_breaker(
    failure_threshold: int = 1,
    recovery_seconds: float = 10.0,
    name: str = "openfoodfacts",
) -> CircuitBreaker:
    """Create a breaker that counts transport failures of one dependency."""
    return CircuitBreaker(
        failure_threshold=failure_threshold,
        recovery_timeout=recovery_seconds,
        expected_exception=TransportError,
        name=name,
    )


@dataclass
class GuardedProductDatabase:
    """Bound every call with a timeout and skip calls while the breaker is open.

    The breaker is shared by every request in the process, so one failing call
    protects all concurrent requests. Its state only changes when a call
    completes, and those transitions run on the event loop thread. There is no
    internal retry: a failed call is reported once and the caller moves on.
    """

    client: ProductDatabaseClient
    breaker: CircuitBreaker
    timeout_seconds: float = 6.0
    _guarded_search: Callable[[str], Awaitable[dict[str, object]]] = field(
        init=False, repr=False
    )

    def __post_init__(self) -> None:
        self._guarded_search = self.breaker(self._search_with_timeout)

    async def search(self, query: str) -> dict[str, object]:
        """Search the product database, failing fast while the breaker is open."""
        if self.breaker.opened:
            _logger.info("Product database breaker open, skipping query %r", query)
            raise DependencyUnavailable(f"{self.breaker.name} is unavailable")
        try:
            return await self._guarded_search(query)
        except CircuitBreakerError as exc:
            raise DependencyUnavailable(f"{self.breaker.name} is unavailable") from exc

    @property
    def state(self) -> str:
        return self.breaker.state

    async def _search_with_timeout(self, query: str) -> dict[str, object]:
        try:
            async with asyncio.timeout(self.timeout_seconds):
                payload = await self.client.search_products(query)
        except TimeoutError as exc:
            _logger.warning(
                "Product database timed out after %ss for %r",
                self.timeout_seconds,
                query,
            )
            raise TransportError(
                f"Product database timed out after {self.timeout_seconds}s"
            ) from exc
        except httpx.HTTPError as exc:
            _logger.warning("Product database request failed for %r: %s", query, exc)
            raise TransportError(f"Product database request failed: {exc}") from exc
        except ValueError as exc:
            _logger.warning("Product database sent an unreadable body for %r", query)
            raise TransportError(f"Product database sent invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise TransportError("Product database sent an unexpected payload shape")
        return payload
