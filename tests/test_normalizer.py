"""Tests for the response normalizer."""

import json

import pytest

from meal_inference.domain.analysis import (
    AnalysisResult,
    DataSource,
    ImageQuality,
    Modality,
    ProductType,
    RawModelReply,
)
from meal_inference.domain.errors import MalformedResponse, ValidationFailure
from meal_inference.domain.nutrition import NutritionUnit
from meal_inference.services.normalizer import (
    ResponseNormalizer,
    classify_product,
    extract_balanced_object,
)


def _normalize(text: str) -> AnalysisResult:
    reply = RawModelReply(text=text, modality=Modality.TEXT)
    return ResponseNormalizer().normalize(reply)


def test_plain_json_is_normalized_with_defaults() -> None:
    result = _normalize('{"foods": ["rice", "beans"], "protein": 12.5}')

    assert result.foods == ["rice", "beans"]
    assert result.protein == 12.5
    assert result.calories is None
    assert result.confidence == 0.5
    assert result.breakdown == {}
    assert result.suggestions == []
    assert result.data_source is DataSource.VISUAL_ESTIMATION
    assert result.is_exact_value is False


def test_fenced_reply_with_prose_is_recovered() -> None:
    text = (
        "Sure! Here is the analysis:\n```json\n"
        '{"foods": ["omelette"], "protein": 18, "calories": 240, "confidence": 0.8}'
        "\n```\nLet me know if you need more."
    )

    result = _normalize(text)

    assert result.foods == ["omelette"]
    assert result.calories == 240
    assert result.confidence == 0.8


def test_braces_inside_strings_do_not_break_extraction() -> None:
    text = (
        'Result: {"foods": ["pasta"], "protein": 9, '
        '"explanation": "sauce {tomato}"} ok'
    )

    result = _normalize(text)

    assert result.explanation == "sauce {tomato}"


def test_control_characters_are_stripped() -> None:
    result = _normalize('{"foods": ["egg"],\x00 "protein": 6}')

    assert result.protein == 6


def test_unbalanced_reply_is_malformed() -> None:
    with pytest.raises(MalformedResponse):
        _normalize('{"foods": ["rice"], "protein": 3')


def test_reply_without_object_is_malformed() -> None:
    with pytest.raises(MalformedResponse):
        _normalize("I cannot analyse this image.")
    with pytest.raises(MalformedResponse):
        _normalize("[1, 2, 3]")


def test_missing_protein_is_a_validation_failure() -> None:
    with pytest.raises(ValidationFailure, match="protein"):
        _normalize('{"foods": ["salad"], "calories": 120}')


def test_out_of_range_confidence_is_a_validation_failure() -> None:
    with pytest.raises(ValidationFailure, match="confidence"):
        _normalize('{"foods": ["salad"], "protein": 2, "confidence": 1.5}')


def test_product_name_stands_in_for_missing_foods() -> None:
    result = _normalize('{"foods": [""], "protein": 4, "productName": "Skyr"}')

    assert result.foods == ["Skyr"]


def test_reply_without_foods_or_product_fails() -> None:
    with pytest.raises(ValidationFailure):
        _normalize('{"foods": [], "protein": 4}')


def test_vision_fields_are_carried() -> None:
    payload = {
        "foods": ["yogurt"],
        "protein": 10,
        "brand": "brand_not_visible",
        "imageQuality": "Good",
        "detectedItems": ["cup", "spoon"],
        "breakdown": {"yogurt": {"protein": 10, "quantity": 125}, "bad": "x"},
        "officialNutrition": {
            "protein": 8,
            "calories": 97,
            "unit": "100g",
            "isFromLabel": True,
        },
    }

    result = _normalize(json.dumps(payload))

    assert result.brand is None
    assert result.image_quality is ImageQuality.GOOD
    assert result.detected_items == ["cup", "spoon"]
    assert list(result.breakdown) == ["yogurt"]
    assert result.breakdown["yogurt"].quantity == "125g"
    assert result.official_nutrition is not None
    assert result.official_nutrition.unit is NutritionUnit.PER_100G
    assert result.official_nutrition.is_usable()
    assert result.product_type is ProductType.PACKAGED_PRODUCT


def test_extract_balanced_object_returns_first_object() -> None:
    assert extract_balanced_object('x {"a": {"b": 1}} {"c": 2}') == '{"a": {"b": 1}}'
    assert extract_balanced_object("no braces") is None


@pytest.mark.parametrize(
    ("raw_type", "foods", "brand", "expected"),
    [
        ("cooked_dish", ["rice"], None, ProductType.COOKED_DISH),
        ("snack", ["Prince biscuits"], "Prince", ProductType.PACKAGED_PRODUCT),
        (None, ["can of tuna"], None, ProductType.PACKAGED_PRODUCT),
        (None, ["grilled chicken"], None, ProductType.COOKED_DISH),
        (None, ["rice", "beans"], None, ProductType.COOKED_DISH),
        (None, ["banana"], None, ProductType.NATURAL_FOOD),
    ],
)
def test_classify_product(
    raw_type: str | None, foods: list[str], brand: str | None, expected: ProductType
) -> None:
    assert classify_product(raw_type, foods=foods, brand=brand) is expected
