"""Similarity search over locally stored products and resolved meals."""

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol, TypeVar

from meal_inference.domain.nutrition import (
    CachedMeal,
    LocalProduct,
    NutritionRecord,
    NutritionUnit,
    Provenance,
    kj_to_kcal,
)
from meal_inference.services.product_lookup import query_variants

_logger = logging.getLogger(__name__)

_Row = TypeVar("_Row")

_TOKEN_RE = re.compile(r"[a-z0-9àâäçéèêëîïôöûùüÿœ]+")
_QUANTITY_RE = re.compile(
    r"\d+(?:[.,]\d+)?\s*(?:g|kg|ml|l|cl|grammes?|grams?|litres?|liters?|"
    r"cuill[eè]res?|spoons?|portions?|servings?)\b",
    re.IGNORECASE,
)
_STOP_WORDS = {
    "and",
    "with",
    "the",
    "for",
    "some",
    "les",
    "des",
    "une",
    "avec",
    "sans",
    "pour",
}


class LocalNutritionStore(Protocol):
    """Read-only local store of products and previously resolved meals."""

    def search_products(self, query: str, limit: int) -> list[LocalProduct]:
        """Return products whose name contains the query."""

    def search_meals(self, query: str, limit: int) -> list[CachedMeal]:
        """Return meals whose description contains the query."""


@dataclass
class LocalCacheService:
    """Find the closest locally known product or meal for a description."""

    store: LocalNutritionStore
    confidence: float = 0.85
    min_similarity: float = 0.5
    limit: int = 5

    def find_product(
        self, product_name: str, brand: str | None = None
    ) -> NutritionRecord | None:
        """Return per-100g facts of the closest local product, if similar enough."""
        target = f"{brand} {product_name}" if brand else product_name
        for query in query_variants(product_name, brand):
            rows = [
                row
                for row in self.store.search_products(query, self.limit)
                if row.protein
            ]
            best = _best_match(
                target, rows, lambda row: f"{row.brand or ''} {row.name}"
            )
            if best is None:
                continue
            product, score = best
            if score < self.min_similarity:
                continue
            _logger.info(
                "Local product match %r (similarity=%.2f)", product.name, score
            )
            return NutritionRecord(
                name=product.name,
                protein=product.protein or 0.0,
                calories=kj_to_kcal(product.energy_kj) if product.energy_kj else None,
                carbs=product.carbs,
                fat=product.fat,
                fiber=product.fiber,
                unit=NutritionUnit.PER_100G,
                provenance=Provenance.LOCAL_CACHE,
                confidence=self.confidence,
                source="local product database",
                brand=product.brand,
                exact=score >= 1.0,
            )
        return None

    def find_meal(self, description: str) -> NutritionRecord | None:
        """Return the totals of the closest previously resolved meal."""
        for query in meal_queries(description):
            best = _best_match(
                description,
                self.store.search_meals(query, self.limit),
                lambda row: row.description,
            )
            if best is None:
                continue
            meal, score = best
            if score < self.min_similarity:
                continue
            _logger.info(
                "Local meal match %r (similarity=%.2f)", meal.description, score
            )
            return NutritionRecord(
                name=meal.description,
                protein=meal.protein,
                calories=meal.calories,
                carbs=meal.carbs,
                fat=meal.fat,
                fiber=meal.fiber,
                unit=NutritionUnit.PER_SERVING,
                provenance=Provenance.LOCAL_CACHE,
                confidence=self.confidence,
                source="previously analysed meal",
                exact=False,
            )
        return None


def meal_queries(description: str) -> list[str]:
    """Full description, main keywords, then the description without quantities."""
    full = " ".join(_TOKEN_RE.findall(description.lower()))
    keyword_tokens = [
        token
        for token in _TOKEN_RE.findall(description.lower())
        if len(token) > 2 and token not in _STOP_WORDS and not token.isdigit()
    ][:3]
    without_quantities = " ".join(
        _TOKEN_RE.findall(_QUANTITY_RE.sub(" ", description).lower())
    )
    queries: list[str] = []
    for query in (full, " ".join(keyword_tokens), without_quantities):
        if query and query not in queries:
            queries.append(query)
    return queries


def similarity(left: str, right: str) -> float:
    """Token overlap (Jaccard) of two texts; differing quantities never match."""
    left_tokens = _tokens(left)
    right_tokens = _tokens(right)
    if not left_tokens or not right_tokens:
        return 0.0
    left_numbers = {token for token in left_tokens if token.isdigit()}
    right_numbers = {token for token in right_tokens if token.isdigit()}
    if left_numbers and right_numbers and left_numbers != right_numbers:
        return 0.0
    return len(left_tokens & right_tokens) / len(left_tokens | right_tokens)


def _tokens(text: str) -> set[str]:
    return {
        token
        for token in _TOKEN_RE.findall(text.lower())
        if (token.isdigit() or len(token) > 2) and token not in _STOP_WORDS
    }


def _best_match(
    target: str, rows: Sequence[_Row], key: Callable[[_Row], str]
) -> tuple[_Row, float] | None:
    """Return the row most similar to the target text, with its score."""
    best: tuple[_Row, float] | None = None
    for row in rows:
        score = similarity(target, key(row))
        if best is None or score > best[1]:
            best = (row, score)
    return best
