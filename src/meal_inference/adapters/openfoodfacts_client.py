"""OpenFoodFacts product search client."""

from dataclasses import dataclass

import httpx

from meal_inference.services.resilience import ProductDatabaseClient

_SEARCH_FIELDS = "product_name,brands,nutriments"


@dataclass
class HttpxOpenFoodFactsClient(ProductDatabaseClient):
    """HTTPX-backed OpenFoodFacts search client."""

    base_url: str
    user_agent: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(
        cls, base_url: str, user_agent: str, timeout_seconds: float = 6.0
    ) -> "HttpxOpenFoodFactsClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            user_agent=user_agent,
            http_client=httpx.AsyncClient(timeout=timeout_seconds),
        )

    async def search_products(
        self, query: str, page_size: int = 1
    ) -> dict[str, object]:
        """Run a free-text product search and return the raw payload."""
        response = await self.http_client.get(
            f"{self.base_url}/cgi/search.pl",
            params={
                "search_terms": query,
                "search_simple": 1,
                "action": "process",
                "json": 1,
                "page_size": page_size,
                "fields": _SEARCH_FIELDS,
            },
            headers={"User-Agent": self.user_agent},
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
