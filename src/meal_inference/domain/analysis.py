"""Analysis request and result models."""

from dataclasses import dataclass, replace
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from meal_inference.domain.nutrition import NutritionUnit


class Modality(StrEnum):
    """Whether a request is text-only or includes an image."""

    TEXT = "text"
    IMAGE = "image"


class ProductType(StrEnum):
    PACKAGED_PRODUCT = "PACKAGED_PRODUCT"
    NATURAL_FOOD = "NATURAL_FOOD"
    COOKED_DISH = "COOKED_DISH"


class DataSource(StrEnum):
    OFFICIAL_LABEL = "OFFICIAL_LABEL"
    ONLINE_DATABASE = "ONLINE_DATABASE"
    FALLBACK_DATABASE = "FALLBACK_DATABASE"
    VISUAL_ESTIMATION = "VISUAL_ESTIMATION"


class ImageQuality(StrEnum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass(frozen=True)
class AnalysisRequest:
    """Single inbound analysis request."""

    modality: Modality
    input_text: str | None = None
    image_reference: str | None = None

    def __post_init__(self) -> None:
        if self.modality is Modality.TEXT and not (self.input_text or "").strip():
            raise ValueError("Text analysis requires a description")
        if self.modality is Modality.IMAGE and not self.image_reference:
            raise ValueError("Image analysis requires an image reference")


@dataclass(frozen=True)
class RawModelReply:
    """Literal text returned by one completion call."""

    text: str
    modality: Modality


@dataclass(frozen=True)
class ConfidenceWeights:
    """Confidence assigned to each nutrition source and the adjustments applied."""

    official_label: float = 0.95
    online_database: float = 0.90
    local_cache: float = 0.85
    fallback_penalty: float = 0.1
    fallback_floor: float = 0.65
    fallback_ceiling: float = 0.75
    visual_estimate_cap: float = 0.6
    poor_image_factor: float = 0.7
    text_fallback_factor: float = 0.8

    def capped_below(self, review_threshold: float) -> "ConfidenceWeights":
        """Keep unconfirmed model estimates under the manual review threshold."""
        ceiling = max(0.0, round(review_threshold - 0.01, 2))
        return replace(
            self, visual_estimate_cap=min(self.visual_estimate_cap, ceiling)
        )


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class BreakdownEntry(_CamelModel):
    """Per-item breakdown supplied by the model."""

    protein: float | None = None
    calories: float | None = None
    quantity: str | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _quantity_as_text(cls, value: object) -> object:
        if isinstance(value, int | float):
            return f"{value:g}g"
        return value


class OfficialNutrition(_CamelModel):
    """Nutrition table numbers read from a package."""

    protein: float | None = None
    calories: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    unit: NutritionUnit | None = None
    is_from_label: bool = False

    def is_usable(self) -> bool:
        """Label values can be trusted only with a protein value and a unit."""
        return self.is_from_label and self.protein is not None and self.unit is not None


class AnalysisResult(_CamelModel):
    """Canonical, confidence-scored output of an analysis."""

    foods: list[str]
    protein: float | None = None
    calories: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    confidence: float = Field(ge=0.0, le=1.0)
    product_type: ProductType
    data_source: DataSource
    is_exact_value: bool = False
    requires_manual_review: bool = False
    explanation: str = ""
    product_name: str | None = None
    brand: str | None = None
    breakdown: dict[str, BreakdownEntry] = Field(default_factory=dict)
    detected_items: list[str] = Field(default_factory=list)
    ingredients: list[str] = Field(default_factory=list)
    image_quality: ImageQuality | None = None
    official_nutrition: OfficialNutrition | None = None
    suggestions: list[str] = Field(default_factory=list)
    estimated_weight_g: float | None = None
    package_contents: str | None = None
    notes: str | None = None

    @model_validator(mode="after")
    def _check_source_consistency(self) -> "AnalysisResult":
        if self.data_source is DataSource.OFFICIAL_LABEL and (
            self.official_nutrition is None
            or not self.official_nutrition.is_usable()
            or self.protein is None
        ):
            raise ValueError(
                "OFFICIAL_LABEL requires a protein value read from a label"
            )
        exact_sources = {DataSource.OFFICIAL_LABEL, DataSource.ONLINE_DATABASE}
        if self.is_exact_value and self.data_source not in exact_sources:
            raise ValueError(f"{self.data_source} values cannot be exact")
        return self

    def with_updates(self, **updates: object) -> "AnalysisResult":
        """Return a validated copy with the given fields replaced."""
        return AnalysisResult.model_validate({**self.model_dump(), **updates})
