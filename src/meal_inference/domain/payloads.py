"""Models for the JSON objects the language model is asked to return."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from meal_inference.domain.analysis import BreakdownEntry, ImageQuality
from meal_inference.domain.nutrition import NutritionUnit

_QUALITIES = {quality.value for quality in ImageQuality}

_BRAND_PLACEHOLDERS = {"", "brand_not_visible", "unknown", "n/a", "none", "null"}

_UNIT_ALIASES = {
    "per_100g": NutritionUnit.PER_100G,
    "100g": NutritionUnit.PER_100G,
    "per 100g": NutritionUnit.PER_100G,
    "per_100ml": NutritionUnit.PER_100G,
    "100ml": NutritionUnit.PER_100G,
    "per_serving": NutritionUnit.PER_SERVING,
    "per serving": NutritionUnit.PER_SERVING,
    "serving": NutritionUnit.PER_SERVING,
    "per_portion": NutritionUnit.PER_SERVING,
}


class _LenientModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class NutritionTablePayload(_LenientModel):
    """Nutrition table numbers as the model reports them."""

    protein: float | None = None
    calories: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    unit: NutritionUnit | None = None
    is_from_label: bool = False

    @field_validator("unit", mode="before")
    @classmethod
    def _normalize_unit(cls, value: object) -> NutritionUnit | None:
        if not isinstance(value, str):
            return None
        return _UNIT_ALIASES.get(value.strip().lower())


class MealPayload(_LenientModel):
    """Meal analysis object returned by text and single-shot vision prompts."""

    foods: list[str] = Field(default_factory=list)
    protein: float = Field(allow_inf_nan=False)
    calories: float | None = None
    carbs: float | None = None
    fat: float | None = None
    fiber: float | None = None
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    explanation: str = ""
    suggestions: list[str] = Field(default_factory=list)
    breakdown: dict[str, BreakdownEntry] = Field(default_factory=dict)
    detected_items: list[str] = Field(default_factory=list)
    image_quality: ImageQuality | None = None
    product_type: str | None = None
    product_name: str | None = None
    brand: str | None = None
    official_nutrition: NutritionTablePayload | None = None
    package_contents: str | None = None
    notes: str | None = None

    @field_validator("foods", "suggestions", "detected_items", mode="before")
    @classmethod
    def _drop_blank_strings(cls, value: object) -> object:
        if value is None:
            return []
        if isinstance(value, list):
            return [item for item in value if not isinstance(item, str) or item.strip()]
        return value

    @field_validator("breakdown", mode="before")
    @classmethod
    def _breakdown_or_empty(cls, value: object) -> object:
        if not isinstance(value, dict):
            return {}
        return {key: item for key, item in value.items() if isinstance(item, dict)}

    @field_validator("image_quality", mode="before")
    @classmethod
    def _known_quality(cls, value: object) -> object:
        return _clean_quality(value)

    @field_validator("brand", mode="before")
    @classmethod
    def _brand_placeholder(cls, value: object) -> object:
        return _clean_brand(value)


class TranscriptionPayload(_LenientModel):
    """Verbatim on-package text from the extraction step."""

    text: str = ""
    language: str | None = None
    legibility: ImageQuality | None = None

    @field_validator("legibility", mode="before")
    @classmethod
    def _known_quality(cls, value: object) -> object:
        return _clean_quality(value)


class InterpretationPayload(_LenientModel):
    """Product identity and nutrition facts read from transcribed package text."""

    product_name: str
    brand: str | None = None
    category: str | None = None
    product_type: str | None = None
    ingredients: list[str] = Field(default_factory=list)
    nutrition: NutritionTablePayload | None = None
    package_contents: str | None = None
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)

    @field_validator("product_name")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("product name is empty")
        return cleaned

    @field_validator("brand", mode="before")
    @classmethod
    def _brand_placeholder(cls, value: object) -> object:
        return _clean_brand(value)


def _clean_brand(value: object) -> object:
    if isinstance(value, str) and value.strip().lower() in _BRAND_PLACEHOLDERS:
        return None
    return value


def _clean_quality(value: object) -> object:
    if isinstance(value, str) and value.strip().lower() in _QUALITIES:
        return value.strip().lower()
    return None
