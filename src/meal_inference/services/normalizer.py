"""Turn raw model text into validated analysis records."""

import json
import logging
import re
from dataclasses import dataclass

from pydantic import ValidationError

from meal_inference.domain.analysis import (
    AnalysisResult,
    DataSource,
    OfficialNutrition,
    ProductType,
    RawModelReply,
)
from meal_inference.domain.errors import MalformedResponse, ValidationFailure
from meal_inference.domain.payloads import MealPayload

_logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json|JSON)?")
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_PACKAGING_WORDS = (
    "pack",
    "package",
    "packet",
    "bottle",
    "can",
    "jar",
    "box",
    "bar",
    "brand",
    "sachet",
    "paquet",
    "boite",
    "bouteille",
    "canette",
)
_COOKING_WORDS = (
    "grilled",
    "fried",
    "baked",
    "roasted",
    "boiled",
    "stew",
    "curry",
    "soup",
    "salad",
    "sandwich",
    "pizza",
    "pasta",
    "lasagna",
    "burger",
    "omelette",
    "risotto",
    "casserole",
    "stir",
    "with",
    "and",
    "avec",
    "plat",
)
_WORD_RE = re.compile(r"[a-z]+")


@dataclass
class ResponseNormalizer:
    """Extract, repair and validate the JSON object inside a model reply."""

    def normalize(self, reply: RawModelReply) -> AnalysisResult:
        """Return a candidate result estimated by the model."""
        data = self.parse_object(reply.text)
        try:
            payload = MealPayload.model_validate(data)
        except ValidationError as exc:
            raise ValidationFailure(_describe(exc)) from exc

        foods = list(payload.foods)
        if not foods and payload.product_name:
            foods = [payload.product_name]
        if not foods:
            raise ValidationFailure("Reply names no foods and no product")

        official = None
        if payload.official_nutrition is not None:
            official = OfficialNutrition.model_validate(
                payload.official_nutrition.model_dump()
            )
        return AnalysisResult(
            foods=foods,
            protein=payload.protein,
            calories=payload.calories,
            carbs=payload.carbs,
            fat=payload.fat,
            fiber=payload.fiber,
            confidence=payload.confidence,
            product_type=classify_product(
                payload.product_type,
                foods=foods,
                product_name=payload.product_name,
                brand=payload.brand,
                has_label=official is not None and official.is_from_label,
            ),
            data_source=DataSource.VISUAL_ESTIMATION,
            explanation=payload.explanation,
            product_name=payload.product_name,
            brand=payload.brand,
            breakdown=payload.breakdown,
            detected_items=payload.detected_items,
            image_quality=payload.image_quality,
            official_nutrition=official,
            suggestions=payload.suggestions,
            package_contents=payload.package_contents,
            notes=payload.notes,
        )

    def parse_object(self, text: str) -> dict[str, object]:
        """Parse the first JSON object in the text, repairing fences and prose."""
        cleaned = clean_reply(text)
        try:
            parsed = json.loads(cleaned)
        except json.JSONDecodeError:
            candidate = extract_balanced_object(cleaned)
            if candidate is None:
                raise MalformedResponse("No balanced JSON object in reply") from None
            _logger.info("Recovered JSON object from surrounding text")
            try:
                parsed = json.loads(candidate)
            except json.JSONDecodeError as exc:
                raise MalformedResponse(f"Unparseable JSON object: {exc}") from exc
        if not isinstance(parsed, dict):
            raise MalformedResponse("Reply is not a JSON object")
        return parsed


def clean_reply(text: str) -> str:
    """Strip code fences and control characters."""
    without_fences = _FENCE_RE.sub("", text)
    return _CONTROL_RE.sub(" ", without_fences).strip()


def extract_balanced_object(text: str) -> str | None:
    """Return the substring from the first '{' to its matching '}'."""
    start = text.find("{")
    if start < 0:
        return None
    depth = 0
    in_str = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_str:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_str = False
            continue
        if char == '"':
            in_str = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def classify_product(
    raw_type: str | None,
    *,
    foods: list[str],
    product_name: str | None = None,
    brand: str | None = None,
    has_label: bool = False,
) -> ProductType:
    """Use the model's product type when valid, otherwise guess from the text."""
    if raw_type:
        normalized = raw_type.strip().upper()
        for product_type in ProductType:
            if product_type.value == normalized:
                return product_type
    if brand or has_label:
        return ProductType.PACKAGED_PRODUCT
    words = set(_WORD_RE.findall(" ".join([*foods, product_name or ""]).lower()))
    if words.intersection(_PACKAGING_WORDS):
        return ProductType.PACKAGED_PRODUCT
    if len(foods) > 1 or words.intersection(_COOKING_WORDS):
        return ProductType.COOKED_DISH
    return ProductType.NATURAL_FOOD


def _describe(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)
