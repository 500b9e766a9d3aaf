"""Nutrition source cascade: ordered sources, first protein value wins."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

import httpx

from meal_inference.domain.analysis import (
    AnalysisResult,
    ConfidenceWeights,
    DataSource,
    ProductType,
)
from meal_inference.domain.errors import InferenceError, ValidationFailure
from meal_inference.domain.nutrition import (
    NutritionRecord,
    NutritionUnit,
    PlausibilityRule,
    Provenance,
)
from meal_inference.domain.portions import PortionEstimate
from meal_inference.services.fallback_table import FallbackTable
from meal_inference.services.local_cache import LocalCacheService
from meal_inference.services.portions import PortionEstimator
from meal_inference.services.product_lookup import ProductLookupService

_logger = logging.getLogger(__name__)


@dataclass
class CascadeContext:
    """Inputs shared by every source during one resolution."""

    product_name: str
    brand: str | None
    candidate: AnalysisResult
    portion: PortionEstimate
    description: str | None = None
    misses: list[str] = field(default_factory=list)


class NutritionSource(Protocol):
    """One step of the cascade."""

    name: str

    async def try_resolve(self, context: CascadeContext) -> AnalysisResult | None:
        """Return a result, or None to let the next source try."""


@dataclass
class OfficialLabelSource:
    """Trust a nutrition table the model read on the package."""

    weights: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    name: str = "official label"

    async def try_resolve(self, context: CascadeContext) -> AnalysisResult | None:
        label = context.candidate.official_nutrition
        if label is None or not label.is_usable():
            return None
        record = NutritionRecord(
            name=context.product_name,
            protein=label.protein or 0.0,
            calories=label.calories,
            carbs=label.carbs,
            fat=label.fat,
            fiber=label.fiber,
            unit=label.unit or NutritionUnit.PER_100G,
            provenance=Provenance.OFFICIAL_LABEL,
            confidence=self.weights.official_label,
            source="nutrition label on the package",
        )
        return apply_record(
            context,
            record,
            DataSource.OFFICIAL_LABEL,
            confidence=self.weights.official_label,
            exact=True,
        )


@dataclass
class OnlineDatabaseSource:
    """Query the remote product database for packaged products."""

    lookup: ProductLookupService
    weights: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    plausibility: PlausibilityRule = field(default_factory=PlausibilityRule)
    name: str = "online database"

    async def try_resolve(self, context: CascadeContext) -> AnalysisResult | None:
        if context.candidate.product_type is not ProductType.PACKAGED_PRODUCT:
            return None
        record = await self.lookup.find(context.product_name, context.brand)
        if record is None:
            context.misses.append(f"{self.name}: no product found")
            return None
        if self.plausibility.is_implausible(record.protein, record.calories):
            context.misses.append(f"{self.name}: implausible values")
            return None
        return apply_record(
            context,
            record,
            DataSource.ONLINE_DATABASE,
            confidence=min(record.confidence, self.weights.online_database),
            exact=record.exact,
        )


@dataclass
class LocalCacheSource:
    """Search locally stored products, then previously analysed meals."""

    cache: LocalCacheService
    weights: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    plausibility: PlausibilityRule = field(default_factory=PlausibilityRule)
    name: str = "local cache"

    async def try_resolve(self, context: CascadeContext) -> AnalysisResult | None:
        record = await asyncio.to_thread(
            self.cache.find_product, context.product_name, context.brand
        )
        if record is None and context.description:
            record = await asyncio.to_thread(self.cache.find_meal, context.description)
        if record is None:
            context.misses.append(f"{self.name}: no similar entry")
            return None
        if self.plausibility.is_implausible(record.protein, record.calories):
            context.misses.append(f"{self.name}: implausible values")
            return None
        return apply_record(
            context,
            record,
            DataSource.ONLINE_DATABASE,
            confidence=min(record.confidence, self.weights.local_cache),
            exact=record.exact,
        )


@dataclass
class FallbackTableSource:
    """Use curated values when the estimate looks wrong or lookups missed."""

    table: FallbackTable
    weights: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    plausibility: PlausibilityRule = field(default_factory=PlausibilityRule)
    name: str = "fallback table"

    async def try_resolve(self, context: CascadeContext) -> AnalysisResult | None:
        candidate = context.candidate
        implausible = self.plausibility.is_implausible(
            candidate.protein, candidate.calories
        )
        lookups_missed = bool(context.misses)
        if not implausible and (
            candidate.product_type is ProductType.COOKED_DISH or not lookups_missed
        ):
            return None

        record = self.table.lookup(context.product_name, context.brand)
        if record is None:
            context.misses.append(f"{self.name}: no entry")
            return None

        confidence = self.confidence_for(record)
        estimate_confidence = min(
            candidate.confidence, self.weights.visual_estimate_cap
        )
        if not implausible and estimate_confidence > confidence:
            _logger.info(
                "Keeping estimate (%.2f) over fallback values (%.2f)",
                estimate_confidence,
                confidence,
            )
            return None
        return apply_record(
            context, record, DataSource.FALLBACK_DATABASE, confidence=confidence
        )

    def confidence_for(self, record: NutritionRecord) -> float:
        """Penalise table confidence and clamp it into the fallback band."""
        penalised = record.confidence - self.weights.fallback_penalty
        return max(
            self.weights.fallback_floor, min(self.weights.fallback_ceiling, penalised)
        )


@dataclass
class VisualEstimateSource:
    """Keep the model's own estimate, flagged for review."""

    weights: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    name: str = "visual estimate"

    async def try_resolve(self, context: CascadeContext) -> AnalysisResult | None:
        candidate = context.candidate
        if candidate.protein is None:
            return None
        explanation = "Values estimated by the model, not confirmed by any database."
        if candidate.explanation:
            explanation = f"{explanation} {candidate.explanation}"
        return candidate.with_updates(
            confidence=min(candidate.confidence, self.weights.visual_estimate_cap),
            data_source=DataSource.VISUAL_ESTIMATION,
            is_exact_value=False,
            requires_manual_review=True,
            estimated_weight_g=context.portion.weight_grams,
            explanation=explanation,
        )


@dataclass
class NutritionSourceCascade:
    """Estimate the portion once, then try each source in order of authority."""

    estimator: PortionEstimator
    sources: Sequence[NutritionSource]

    async def resolve(
        self,
        product_name: str,
        brand: str | None,
        candidate: AnalysisResult,
        description: str | None = None,
    ) -> AnalysisResult:
        portion = self.estimate_portion(product_name, candidate, description)
        context = CascadeContext(
            product_name=product_name,
            brand=brand,
            candidate=candidate,
            portion=portion,
            description=description,
        )
        for source in self.sources:
            try:
                result = await source.try_resolve(context)
            except (InferenceError, httpx.HTTPError) as exc:
                _logger.warning("Nutrition source %s failed: %s", source.name, exc)
                context.misses.append(f"{source.name}: {exc}")
                continue
            if result is not None and result.protein is not None:
                _logger.info(
                    "Nutrition for %r resolved by %s (confidence=%.2f)",
                    product_name,
                    source.name,
                    result.confidence,
                )
                return result
        raise ValidationFailure(
            f"No nutrition source produced a protein value for {product_name!r}"
        )

    def estimate_portion(
        self, product_name: str, candidate: AnalysisResult, description: str | None
    ) -> PortionEstimate:
        breakdown_hints = [
            entry.quantity for entry in candidate.breakdown.values() if entry.quantity
        ]
        hints = (candidate.package_contents, candidate.product_name, product_name)
        name_hints = [hint for hint in hints if hint]
        return self.estimator.estimate(
            [description or "", *candidate.foods],
            breakdown_hints=breakdown_hints,
            product_name_hints=name_hints,
        )


def apply_record(
    context: CascadeContext,
    record: NutritionRecord,
    data_source: DataSource,
    *,
    confidence: float,
    exact: bool = False,
) -> AnalysisResult:
    """Replace the candidate's numbers with the record's, scaled to the portion."""
    portion = context.portion
    totals = record.for_portion(portion.weight_grams)
    if record.unit is NutritionUnit.PER_SERVING:
        basis = "per serving, used as-is"
        weight = None
    else:
        basis = f"per 100g, scaled to {portion.describe()}"
        weight = portion.weight_grams
    return context.candidate.with_updates(
        protein=totals.protein,
        calories=totals.calories,
        carbs=totals.carbs,
        fat=totals.fat,
        fiber=totals.fiber,
        confidence=confidence,
        data_source=data_source,
        is_exact_value=exact,
        brand=context.candidate.brand or record.brand,
        estimated_weight_g=weight,
        explanation=f"Values from {record.source} ({record.name}), {basis}.",
    )
