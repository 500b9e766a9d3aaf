"""Shared test fixtures."""

import asyncio
import json
from dataclasses import dataclass, field

import pytest

from meal_inference.config import Settings
from meal_inference.containers import AppContainer, build_cascade
from meal_inference.domain.analysis import (
    AnalysisResult,
    DataSource,
    OfficialNutrition,
    ProductType,
)
from meal_inference.domain.errors import RequestRejected
from meal_inference.domain.nutrition import CachedMeal, LocalProduct, NutritionUnit
from meal_inference.services.cascade import NutritionSourceCascade
from meal_inference.services.gateway import CompletionClient, ModelGateway
from meal_inference.services.local_cache import LocalCacheService, LocalNutritionStore
from meal_inference.services.normalizer import ResponseNormalizer
from meal_inference.services.packaging import TwoStepPackagingPipeline
from meal_inference.services.pipeline import ImageStore, MealAnalysisPipeline
from meal_inference.services.resilience import (
    GuardedProductDatabase,
    ProductDatabaseClient,
    build_breaker,
)

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"

YOGURT_TRANSCRIPTION: dict[str, object] = {
    "text": "DANONE Yaourt nature. Valeurs nutritionnelles pour 100g: "
    "Energie 97 kcal, Protéines 8g, Glucides 4,5g",
    "language": "fr",
    "legibility": "good",
}
YOGURT_INTERPRETATION: dict[str, object] = {
    "productName": "Plain yogurt",
    "brand": "Danone",
    "category": "dairy",
    "productType": "PACKAGED_PRODUCT",
    "nutrition": {
        "protein": 8,
        "calories": 97,
        "unit": "per_100g",
        "isFromLabel": True,
    },
    "confidence": 0.9,
}


async def _no_sleep(delay: float) -> None:
    return None


@dataclass
class ScriptedCompletionClient(CompletionClient):
    """Completion client that replays queued replies or errors in order."""

    replies: list[str | Exception] = field(default_factory=list)
    calls: list[dict[str, object]] = field(default_factory=list)

    def queue(self, *replies: str | Exception | dict[str, object]) -> None:
        for reply in replies:
            if isinstance(reply, dict):
                reply = json.dumps(reply)
            self.replies.append(reply)

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
        self.calls.append(
            {
                "model": model,
                "system_prompt": system_prompt,
                "user_prompt": user_prompt,
                "image_data_url": image_data_url,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        if not self.replies:
            raise AssertionError("No scripted reply left")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@dataclass
class FakeProductDatabaseClient(ProductDatabaseClient):
    """Product database transport returning a fixed payload."""

    payload: dict[str, object] = field(default_factory=lambda: {"products": []})
    delay_seconds: float = 0.0
    error: Exception | None = None
    queries: list[str] = field(default_factory=list)

    async def search_products(
        self, query: str, page_size: int = 1
    ) -> dict[str, object]:
        self.queries.append(query)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return self.payload


@dataclass
class InMemoryLocalStore(LocalNutritionStore):
    """Local nutrition store backed by lists, with substring search."""

    products: list[LocalProduct] = field(default_factory=list)
    meals: list[CachedMeal] = field(default_factory=list)

    def search_products(self, query: str, limit: int) -> list[LocalProduct]:
        needle = query.lower()
        return [
            product
            for product in self.products
            if needle in product.name.lower()
            or needle in f"{product.brand or ''} {product.name}".lower()
        ][:limit]

    def search_meals(self, query: str, limit: int) -> list[CachedMeal]:
        needle = query.lower()
        return [meal for meal in self.meals if needle in meal.description.lower()][
            :limit
        ]


@dataclass
class FakeImageStore(ImageStore):
    """Image store that serves fixed bytes, or rejects unknown locators."""

    images: dict[str, bytes] = field(
        default_factory=lambda: {"meals/photo.jpg": JPEG_BYTES}
    )

    async def fetch(self, locator: str) -> bytes:
        if locator not in self.images:
            raise RequestRejected(f"Unknown image {locator}")
        return self.images[locator]


def make_candidate(**overrides: object) -> AnalysisResult:
    """Model-estimated candidate with sensible defaults."""
    values: dict[str, object] = {
        "foods": ["whole wheat bread"],
        "protein": 7.0,
        "calories": 160.0,
        "confidence": 0.7,
        "product_type": ProductType.NATURAL_FOOD,
        "data_source": DataSource.VISUAL_ESTIMATION,
        "explanation": "Two slices of bread.",
    }
    values.update(overrides)
    return AnalysisResult.model_validate(values)


def label(
    protein: float, calories: float | None, unit: NutritionUnit
) -> OfficialNutrition:
    return OfficialNutrition(
        protein=protein, calories=calories, unit=unit, is_from_label=True
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        openai_api_key="openai-key",
        supabase_url="https://example.supabase.co",
        supabase_service_key=(
            "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
            "eyJyb2xlIjoic2VydmljZV9yb2xlIn0."
            "c2lnbmF0dXJl"
        ),
    )


@pytest.fixture
def completion_client() -> ScriptedCompletionClient:
    return ScriptedCompletionClient()


@pytest.fixture
def gateway(completion_client: ScriptedCompletionClient) -> ModelGateway:
    return ModelGateway(
        client=completion_client,
        text_model="text-model",
        vision_model="vision-model",
        sleep=_no_sleep,
    )


@pytest.fixture
def product_client() -> FakeProductDatabaseClient:
    return FakeProductDatabaseClient()


@pytest.fixture
def product_database(
    product_client: FakeProductDatabaseClient,
) -> GuardedProductDatabase:
    return GuardedProductDatabase(
        client=product_client,
        breaker=build_breaker(failure_threshold=1, recovery_seconds=10),
        timeout_seconds=0.05,
    )


@pytest.fixture
def local_store() -> InMemoryLocalStore:
    return InMemoryLocalStore()


@pytest.fixture
def cascade(
    product_database: GuardedProductDatabase, local_store: InMemoryLocalStore
) -> NutritionSourceCascade:
    return build_cascade(product_database, LocalCacheService(local_store))


@pytest.fixture
def image_store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def pipeline(
    gateway: ModelGateway,
    cascade: NutritionSourceCascade,
    image_store: FakeImageStore,
) -> MealAnalysisPipeline:
    normalizer = ResponseNormalizer()
    return MealAnalysisPipeline(
        gateway=gateway,
        normalizer=normalizer,
        cascade=cascade,
        packaging=TwoStepPackagingPipeline(
            gateway=gateway, normalizer=normalizer, cascade=cascade
        ),
        image_store=image_store,
    )


@pytest.fixture
def container(
    settings: Settings,
    gateway: ModelGateway,
    cascade: NutritionSourceCascade,
    pipeline: MealAnalysisPipeline,
    product_database: GuardedProductDatabase,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        gateway=gateway,
        cascade=cascade,
        pipeline=pipeline,
        product_database=product_database,
        close_resources=close_resources,
    )
