"""Two-step packaging analysis: transcribe package text, then interpret it."""

import logging
from dataclasses import dataclass
from enum import StrEnum

from pydantic import ValidationError

from meal_inference.domain.analysis import (
    AnalysisResult,
    DataSource,
    Modality,
    OfficialNutrition,
)
from meal_inference.domain.errors import InferenceError, ValidationFailure
from meal_inference.domain.payloads import InterpretationPayload, TranscriptionPayload
from meal_inference.services.cascade import NutritionSourceCascade
from meal_inference.services.gateway import ModelGateway
from meal_inference.services.normalizer import ResponseNormalizer, classify_product
from meal_inference.services.prompts import interpretation_prompt, transcription_prompt

_logger = logging.getLogger(__name__)


class PackagingStage(StrEnum):
    EXTRACT = "extract"
    INTERPRET = "interpret"
    MERGE = "merge"


@dataclass(frozen=True)
class PackagingSuccess:
    result: AnalysisResult
    extracted_text: str


@dataclass(frozen=True)
class PackagingFallback:
    """The two-step path gave up; the caller should use single-shot vision."""

    stage: PackagingStage
    reason: str


PackagingOutcome = PackagingSuccess | PackagingFallback


@dataclass
class TwoStepPackagingPipeline:
    """Run EXTRACT, INTERPRET and MERGE, or report where it stopped."""

    gateway: ModelGateway
    normalizer: ResponseNormalizer
    cascade: NutritionSourceCascade
    min_text_chars: int = 10

    async def run(self, image: bytes, caption: str | None = None) -> PackagingOutcome:
        try:
            transcription = await self.extract(image)
        except InferenceError as exc:
            return _fallback(PackagingStage.EXTRACT, str(exc))
        text = transcription.text.strip()
        if len(text) < self.min_text_chars:
            return _fallback(
                PackagingStage.EXTRACT,
                f"only {len(text)} characters of package text",
            )

        try:
            interpretation = await self.interpret(text, caption)
        except InferenceError as exc:
            return _fallback(PackagingStage.INTERPRET, str(exc))

        try:
            candidate = merge_candidate(transcription, interpretation)
            result = await self.cascade.resolve(
                interpretation.product_name,
                interpretation.brand,
                candidate,
                description=caption,
            )
        except (InferenceError, ValueError) as exc:
            return _fallback(PackagingStage.MERGE, str(exc))
        _logger.info("Two-step packaging resolved %r", interpretation.product_name)
        return PackagingSuccess(result=result, extracted_text=text)

    async def extract(self, image: bytes) -> TranscriptionPayload:
        """Ask the model for the package text only."""
        reply = await self.gateway.complete(
            transcription_prompt(), Modality.IMAGE, image
        )
        data = self.normalizer.parse_object(reply.text)
        try:
            return TranscriptionPayload.model_validate(data)
        except ValidationError as exc:
            raise ValidationFailure(f"Invalid transcription: {exc}") from exc

    async def interpret(
        self, text: str, caption: str | None = None
    ) -> InterpretationPayload:
        """Ask a text-only completion to identify the product in the text."""
        reply = await self.gateway.complete(
            interpretation_prompt(text, caption), Modality.TEXT
        )
        data = self.normalizer.parse_object(reply.text)
        try:
            return InterpretationPayload.model_validate(data)
        except ValidationError as exc:
            raise ValidationFailure(f"Invalid interpretation: {exc}") from exc


def merge_candidate(
    transcription: TranscriptionPayload, interpretation: InterpretationPayload
) -> AnalysisResult:
    """Build the candidate handed to the cascade from both steps.

    Nutrition numbers are carried only as the label table; the candidate has no
    estimated totals of its own, so the cascade must find a source for them.
    """
    official = None
    if interpretation.nutrition is not None:
        official = OfficialNutrition.model_validate(
            interpretation.nutrition.model_dump()
        )
    foods = [interpretation.product_name]
    product_type = classify_product(
        interpretation.product_type or "PACKAGED_PRODUCT",
        foods=foods,
        product_name=interpretation.product_name,
        brand=interpretation.brand,
        has_label=official is not None and official.is_from_label,
    )
    return AnalysisResult(
        foods=foods,
        confidence=interpretation.confidence,
        product_type=product_type,
        data_source=DataSource.VISUAL_ESTIMATION,
        explanation="Identified from text transcribed from the package.",
        product_name=interpretation.product_name,
        brand=interpretation.brand,
        ingredients=interpretation.ingredients,
        image_quality=transcription.legibility,
        official_nutrition=official,
        package_contents=interpretation.package_contents,
        notes=interpretation.category,
    )


def _fallback(stage: PackagingStage, reason: str) -> PackagingFallback:
    _logger.warning("Two-step packaging stopped at %s: %s", stage, reason)
    return PackagingFallback(stage=stage, reason=reason)
