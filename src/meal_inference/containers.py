"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from meal_inference.adapters.http_image_store import HttpxImageStore
from meal_inference.adapters.openai_completion_client import OpenAICompletionClient
from meal_inference.adapters.openfoodfacts_client import HttpxOpenFoodFactsClient
from meal_inference.adapters.supabase_local_nutrition_repository import (
    SupabaseLocalNutritionStore,
)
from meal_inference.config import Settings
from meal_inference.domain.analysis import ConfidenceWeights
from meal_inference.services.cache import InMemoryCache
from meal_inference.services.cascade import (
    FallbackTableSource,
    LocalCacheSource,
    NutritionSourceCascade,
    OfficialLabelSource,
    OnlineDatabaseSource,
    VisualEstimateSource,
)
from meal_inference.services.fallback_table import FallbackTable
from meal_inference.services.gateway import ModelGateway
from meal_inference.services.local_cache import LocalCacheService
from meal_inference.services.normalizer import ResponseNormalizer
from meal_inference.services.packaging import TwoStepPackagingPipeline
from meal_inference.services.pipeline import MealAnalysisPipeline
from meal_inference.services.portions import PortionEstimator, QuantityParser
from meal_inference.services.product_lookup import ProductLookupService
from meal_inference.services.resilience import GuardedProductDatabase, build_breaker


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    gateway: ModelGateway
    cascade: NutritionSourceCascade
    pipeline: MealAnalysisPipeline
    product_database: GuardedProductDatabase
    close_resources: Callable[[], Awaitable[None]]


def build_cascade(
    product_database: GuardedProductDatabase,
    local_cache: LocalCacheService,
    weights: ConfidenceWeights | None = None,
    confidence_threshold: float = 0.7,
) -> NutritionSourceCascade:
    """Assemble the nutrition sources in order of authority."""
    resolved_weights = (weights or ConfidenceWeights()).capped_below(
        confidence_threshold
    )
    lookup = ProductLookupService(database=product_database, cache=InMemoryCache())
    return NutritionSourceCascade(
        estimator=PortionEstimator(QuantityParser()),
        sources=[
            OfficialLabelSource(resolved_weights),
            OnlineDatabaseSource(lookup, resolved_weights),
            LocalCacheSource(local_cache, resolved_weights),
            FallbackTableSource(FallbackTable(), resolved_weights),
            VisualEstimateSource(resolved_weights),
        ],
    )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    weights = ConfidenceWeights().capped_below(resolved_settings.confidence_threshold)
    completion_client = OpenAICompletionClient.create(resolved_settings.openai_api_key)
    gateway = ModelGateway(
        client=completion_client,
        text_model=resolved_settings.openai_model,
        vision_model=resolved_settings.openai_vision_model,
        max_tokens=resolved_settings.openai_max_tokens,
        temperature=resolved_settings.openai_temperature,
        timeout_seconds=resolved_settings.ai_timeout_seconds,
        max_retries=resolved_settings.ai_max_retries,
        backoff_base_seconds=resolved_settings.ai_backoff_base_seconds,
        backoff_max_seconds=resolved_settings.ai_backoff_max_seconds,
    )
    off_client = HttpxOpenFoodFactsClient.create(
        base_url=resolved_settings.off_base_url,
        user_agent=resolved_settings.off_user_agent,
        timeout_seconds=resolved_settings.off_timeout_seconds,
    )
    product_database = GuardedProductDatabase(
        client=off_client,
        breaker=build_breaker(
            failure_threshold=resolved_settings.breaker_failure_threshold,
            recovery_seconds=resolved_settings.breaker_recovery_seconds,
        ),
        timeout_seconds=resolved_settings.off_timeout_seconds,
    )
    local_cache = LocalCacheService(SupabaseLocalNutritionStore(supabase_client))
    cascade = build_cascade(
        product_database,
        local_cache,
        weights,
        confidence_threshold=resolved_settings.confidence_threshold,
    )
    normalizer = ResponseNormalizer()
    image_store = HttpxImageStore.create(resolved_settings.image_store_base_url)
    pipeline = MealAnalysisPipeline(
        gateway=gateway,
        normalizer=normalizer,
        cascade=cascade,
        packaging=TwoStepPackagingPipeline(
            gateway=gateway,
            normalizer=normalizer,
            cascade=cascade,
            min_text_chars=resolved_settings.packaging_min_text_chars,
        ),
        image_store=image_store,
        weights=weights,
        confidence_threshold=resolved_settings.confidence_threshold,
        request_timeout_seconds=resolved_settings.request_timeout_seconds,
        two_step_enabled=resolved_settings.packaging_two_step_enabled,
    )

    async def close_resources() -> None:
        await completion_client.close()
        await off_client.close()
        await image_store.close()

    return AppContainer(
        settings=resolved_settings,
        gateway=gateway,
        cascade=cascade,
        pipeline=pipeline,
        product_database=product_database,
        close_resources=close_resources,
    )
