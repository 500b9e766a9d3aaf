"""Product nutrition lookups against the remote product database."""

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from meal_inference.domain.nutrition import (
    NutritionRecord,
    NutritionUnit,
    Provenance,
    kj_to_kcal,
)
from meal_inference.services.cache import Cache

_logger = logging.getLogger(__name__)

_WEIGHT_RE = re.compile(r"\d+(?:[.,]\d+)?\s*(?:g|kg|ml|l|cl|oz|lb)\b", re.IGNORECASE)
_MULTIPACK_RE = re.compile(
    r"\d+\s*[x×]\s*\d+(?:[.,]\d+)?\s*(?:g|kg|ml|l|cl)?\b", re.IGNORECASE
)
_GENERIC_RE = re.compile(
    r"\b(?:bio|biologique|organic|nature|naturel|natural|plain)\b", re.IGNORECASE
)
_BRACKETS_RE = re.compile(r"[(),\[\]]")
_SPACES_RE = re.compile(r"\s+")

_NUTRIENT_SUFFIXES = ("_100g", "-100g", "_per_100g", "")


class ProductDatabase(Protocol):
    """Guarded access to the remote product database."""

    async def search(self, query: str) -> dict[str, object]:
        """Search products by free text."""


@dataclass
class ProductLookupService:
    """Resolve a product name to per-100g nutrition facts, with caching."""

    database: ProductDatabase
    cache: Cache
    search_ttl_seconds: int = 3600
    max_queries: int = 3

    async def find(
        self, product_name: str, brand: str | None = None
    ) -> NutritionRecord | None:
        """Try query variants in order and return the first usable product."""
        for query in query_variants(product_name, brand)[: self.max_queries]:
            cache_key = f"off:search:{query.lower()}"
            cached = self.cache.get(cache_key)
            if isinstance(cached, NutritionRecord):
                return cached

            payload = await self.database.search(query)
            record = parse_search_payload(payload, query)
            _logger.info(
                "Product search: query=%s found=%s", query, record is not None
            )
            if record is not None:
                self.cache.set(cache_key, record, ttl_seconds=self.search_ttl_seconds)
                return record
        return None


def query_variants(product_name: str, brand: str | None = None) -> list[str]:
    """Search queries from most to least specific: brand + name, name, keywords."""
    cleaned = clean_product_name(product_name)
    variants: list[str] = []
    if brand and brand.lower() not in cleaned.lower():
        variants.append(f"{brand} {cleaned}".strip())
    variants.append(cleaned)
    keywords = [word for word in cleaned.split() if len(word) > 2][:3]
    variants.append(" ".join(keywords))
    unique: list[str] = []
    for variant in variants:
        if variant and variant.lower() not in {item.lower() for item in unique}:
            unique.append(variant)
    return unique


def clean_product_name(product_name: str) -> str:
    """Drop weights, pack formats, generic words and brackets from a name."""
    text = _MULTIPACK_RE.sub(" ", product_name)
    text = _WEIGHT_RE.sub(" ", text)
    text = _GENERIC_RE.sub(" ", text)
    text = _BRACKETS_RE.sub(" ", text)
    return _SPACES_RE.sub(" ", text).strip()


def parse_search_payload(
    payload: dict[str, object], query: str
) -> NutritionRecord | None:
    """Map the first product of a search payload to a nutrition record."""
    if not isinstance(payload, dict):
        return None
    products = payload.get("products")
    if not isinstance(products, list) or not products:
        return None
    product = products[0]
    if not isinstance(product, dict):
        return None
    nutriments = product.get("nutriments")
    if not isinstance(nutriments, dict) or not nutriments:
        return None
    protein = _nutrient(nutriments, "proteins")
    if protein is None:
        return None
    calories = _nutrient(nutriments, "energy-kcal")
    if calories is None:
        energy_kj = _nutrient(nutriments, "energy")
        calories = kj_to_kcal(energy_kj) if energy_kj is not None else None
    name = str(product.get("product_name") or query)
    brand = product.get("brands") or None
    return NutritionRecord(
        name=name,
        protein=protein,
        calories=calories,
        carbs=_nutrient(nutriments, "carbohydrates"),
        fat=_nutrient(nutriments, "fat"),
        fiber=_nutrient(nutriments, "fiber"),
        unit=NutritionUnit.PER_100G,
        provenance=Provenance.REMOTE_DATABASE,
        confidence=match_confidence(product, query),
        source="OpenFoodFacts",
        brand=str(brand) if brand else None,
        exact=_names_match(product.get("product_name"), query),
    )


def match_confidence(product: dict[str, object], query: str) -> float:
    """Score how much a search hit can be trusted for the query."""
    nutriments = product.get("nutriments") or {}
    score = 60
    if isinstance(nutriments, dict):
        if nutriments.get("proteins_100g") is not None:
            score += 15
        if nutriments.get("energy-kcal_100g") is not None:
            score += 15
    if product.get("brands"):
        score += 5
    if product.get("product_name"):
        score += 5
    if _names_match(product.get("product_name"), query):
        score += 10
    return min(score, 95) / 100


def _names_match(product_name: object, query: str) -> bool:
    if not isinstance(product_name, str) or not product_name.strip():
        return False
    name = product_name.strip().lower()
    normalized_query = query.strip().lower()
    return name in normalized_query or normalized_query in name


def _nutrient(nutriments: dict[str, object], key: str) -> float | None:
    """Read a per-100g nutrient, trying the suffixes the database uses."""
    for suffix in _NUTRIENT_SUFFIXES:
        raw = nutriments.get(f"{key}{suffix}")
        if raw is None or raw == "":
            continue
        try:
            value = float(raw)
        except (TypeError, ValueError):
            continue
        if value >= 0:
            return value
    return None
