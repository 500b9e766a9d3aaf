"""Pipeline orchestrator: the two analysis entry points."""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Protocol

from pydantic import ValidationError

from meal_inference.domain.analysis import (
    AnalysisRequest,
    AnalysisResult,
    ConfidenceWeights,
    DataSource,
    ImageQuality,
    Modality,
    ProductType,
)
from meal_inference.domain.errors import InferenceError, RequestRejected
from meal_inference.services.cascade import NutritionSourceCascade
from meal_inference.services.gateway import ModelGateway
from meal_inference.services.normalizer import ResponseNormalizer
from meal_inference.services.packaging import PackagingSuccess, TwoStepPackagingPipeline
from meal_inference.services.prompts import image_analysis_prompt, text_analysis_prompt

_logger = logging.getLogger(__name__)


class ImageStore(Protocol):
    """Resolves an image locator to already-stored image bytes."""

    async def fetch(self, locator: str) -> bytes:
        """Return the image bytes for the locator."""


@dataclass
class MealAnalysisPipeline:
    """Route a request through the model, the cascade and final scoring.

    Every call returns an AnalysisResult. Failures that leave no usable output
    become a zero-confidence result flagged for manual review.
    """

    gateway: ModelGateway
    normalizer: ResponseNormalizer
    cascade: NutritionSourceCascade
    packaging: TwoStepPackagingPipeline
    image_store: ImageStore
    weights: ConfidenceWeights = field(default_factory=ConfidenceWeights)
    confidence_threshold: float = 0.7
    request_timeout_seconds: float = 60.0
    two_step_enabled: bool = True

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        if request.modality is Modality.TEXT:
            return await self.analyze_text(request.input_text or "")
        return await self.analyze_image(
            request.image_reference or "", caption=request.input_text
        )

    async def analyze_text(self, description: str) -> AnalysisResult:
        """Analyse a free-text meal description."""
        return await self._within_deadline(
            self._text_flow(description), fallback_foods=[description]
        )

    async def analyze_image(
        self, image_locator: str, caption: str | None = None
    ) -> AnalysisResult:
        """Analyse a stored meal or package photo, with an optional caption."""
        return await self._within_deadline(
            self._image_flow(image_locator, caption),
            fallback_foods=[caption] if caption else [],
        )

    def finalize(self, result: AnalysisResult) -> AnalysisResult:
        """Apply the image-quality penalty and derive the review flag."""
        confidence = result.confidence
        poor_image = result.image_quality is ImageQuality.POOR
        if poor_image:
            confidence *= self.weights.poor_image_factor
        review = (
            result.requires_manual_review
            or poor_image
            or confidence < self.confidence_threshold
        )
        return result.with_updates(
            confidence=confidence, requires_manual_review=review
        )

    def degraded(self, foods: list[str], reason: str) -> AnalysisResult:
        """Best-effort result used when no source produced usable values."""
        _logger.warning("Returning degraded analysis: %s", reason)
        return AnalysisResult(
            foods=[food for food in foods if food] or ["unidentified meal"],
            confidence=0.0,
            product_type=ProductType.NATURAL_FOOD,
            data_source=DataSource.VISUAL_ESTIMATION,
            requires_manual_review=True,
            explanation=f"{reason} Please check and enter the values manually.",
        )

    async def _within_deadline(
        self, flow: Awaitable[AnalysisResult], fallback_foods: list[str]
    ) -> AnalysisResult:
        try:
            async with asyncio.timeout(self.request_timeout_seconds):
                return await flow
        except TimeoutError:
            return self.degraded(
                fallback_foods,
                f"Analysis did not finish within {self.request_timeout_seconds:g}s.",
            )
        except (InferenceError, ValidationError) as exc:
            return self.degraded(fallback_foods, f"Analysis failed: {exc}.")

    async def _text_flow(self, description: str) -> AnalysisResult:
        result = await self._describe(description)
        return self.finalize(result)

    async def _image_flow(
        self, image_locator: str, caption: str | None
    ) -> AnalysisResult:
        try:
            image = await self.image_store.fetch(image_locator)
        except RequestRejected as exc:
            if not caption:
                raise
            return await self._caption_fallback(caption, exc)

        if self.two_step_enabled:
            outcome = await self.packaging.run(image, caption)
            if isinstance(outcome, PackagingSuccess):
                return self.finalize(outcome.result)
            _logger.info(
                "Using single-shot vision after two-step %s failed: %s",
                outcome.stage,
                outcome.reason,
            )

        try:
            reply = await self.gateway.complete(
                image_analysis_prompt(caption), Modality.IMAGE, image
            )
        except RequestRejected as exc:
            if not caption:
                raise
            return await self._caption_fallback(caption, exc)
        candidate = self.normalizer.normalize(reply)
        result = await self._resolve(candidate, caption)
        return self.finalize(result)

    async def _caption_fallback(
        self, caption: str, cause: RequestRejected
    ) -> AnalysisResult:
        _logger.warning("Image rejected (%s), analysing the caption instead", cause)
        result = await self._describe(caption)
        result = result.with_updates(
            confidence=result.confidence * self.weights.text_fallback_factor,
            requires_manual_review=True,
            explanation=(
                "The photo could not be analysed; values come from the caption. "
                f"{result.explanation}"
            ),
        )
        return self.finalize(result)

    async def _describe(self, description: str) -> AnalysisResult:
        reply = await self.gateway.complete(
            text_analysis_prompt(description), Modality.TEXT
        )
        candidate = self.normalizer.normalize(reply)
        return await self._resolve(candidate, description)

    async def _resolve(
        self, candidate: AnalysisResult, description: str | None
    ) -> AnalysisResult:
        product_name = candidate.product_name or candidate.foods[0]
        return await self.cascade.resolve(
            product_name, candidate.brand, candidate, description=description
        )
