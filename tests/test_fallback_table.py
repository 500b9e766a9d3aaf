"""Tests for the curated fallback nutrition table."""

from meal_inference.domain.nutrition import NutritionUnit, Provenance
from meal_inference.services.fallback_table import (
    FallbackEntry,
    FallbackTable,
    keyword_score,
    normalize_term,
)


def test_exact_name_match() -> None:
    record = FallbackTable().lookup("Whole wheat bread")

    assert record is not None
    assert record.name == "whole wheat bread"
    assert record.protein == 8.5
    assert record.calories == 247
    assert record.unit is NutritionUnit.PER_100G
    assert record.provenance is Provenance.FALLBACK_TABLE


def test_alias_match() -> None:
    record = FallbackTable().lookup("pain complet")

    assert record is not None
    assert record.name == "whole wheat bread"


def test_quantities_and_filler_words_are_ignored() -> None:
    record = FallbackTable().lookup("2 slices of whole wheat bread")

    assert record is not None
    assert record.name == "whole wheat bread"


def test_brand_steers_keyword_match() -> None:
    record = FallbackTable().lookup("biscuits chocolat", brand="Prince")

    assert record is not None
    assert record.name == "prince chocolate biscuit"
    assert record.brand == "prince"
    assert record.confidence == 0.85


def test_brand_placeholder_is_ignored() -> None:
    assert normalize_term("Yogurt", "brand_not_visible") == "yogurt"


def test_category_word_is_the_last_resort() -> None:
    record = FallbackTable().lookup("some fish")

    assert record is not None
    assert record.name == "salmon"


def test_unknown_or_empty_terms_have_no_entry() -> None:
    table = FallbackTable()

    assert table.lookup("xyzzy") is None
    assert table.lookup("250g") is None


def test_custom_entries() -> None:
    table = FallbackTable(
        entries=(FallbackEntry("tofu", 12.0, 120, 2.0, 7.0, 1.0, aliases=("soy",)),),
        categories={},
    )

    record = table.lookup("soy")

    assert record is not None
    assert record.name == "tofu"
    assert table.lookup("bread") is None


def test_normalize_term_prefixes_brand_once() -> None:
    assert normalize_term("Prince 300g biscuits", "Prince") == "prince biscuits"
    assert normalize_term("chocolate biscuits", "Prince") == (
        "prince chocolate biscuits"
    )


def test_keyword_score_matches_substrings_both_ways() -> None:
    assert keyword_score(["chocolat"], "prince chocolate biscuit") == 1.0
    assert keyword_score(["biscuits", "lemon"], "prince chocolate biscuit") == 0.5
    assert keyword_score(["rice"], "a b") == 0.0
