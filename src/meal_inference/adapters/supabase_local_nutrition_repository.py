"""Supabase implementation for the local nutrition cache."""

import logging
import math
from dataclasses import dataclass

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from meal_inference.domain.errors import TransportError
from meal_inference.domain.nutrition import CachedMeal, LocalProduct
from meal_inference.services.local_cache import LocalNutritionStore

_PRODUCT_COLUMNS = (
    "product_name,brands,energy_100g,proteins_100g,"
    "carbohydrates_100g,fat_100g,fiber_100g"
)
_MEAL_COLUMNS = "description,protein,calories,carbs,fat,fiber"

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseLocalNutritionStore(LocalNutritionStore):
    """Read-only access to the local product mirror and resolved meals."""

    client: Client

    def search_products(self, query: str, limit: int) -> list[LocalProduct]:
        """Search the local product mirror by name."""
        request = (
            self.client.table("openfoodfacts_products")
            .select(_PRODUCT_COLUMNS)
            .ilike("product_name", f"%{_escape_pattern(query)}%")
            .gt("proteins_100g", 0)
            .limit(limit)
        )
        return [_parse_product(row) for row in _execute(request)]

    def search_meals(self, query: str, limit: int) -> list[CachedMeal]:
        """Search previously resolved meals by description."""
        request = (
            self.client.table("meals")
            .select(_MEAL_COLUMNS)
            .ilike("description", f"%{_escape_pattern(query)}%")
            .gt("protein", 0)
            .gt("calories", 0)
            .order("protein", desc=True)
            .limit(limit)
        )
        return [_parse_meal(row) for row in _execute(request)]


def _execute(request) -> list[dict[str, object]]:
    try:
        response = request.execute()
    except (APIError, httpx.HTTPError) as exc:
        raise TransportError(f"Local nutrition store query failed: {exc}") from exc
    return response.data or []


def _escape_pattern(query: str) -> str:
    return query.replace("%", " ").replace("_", " ").strip()


def _parse_product(row: dict[str, object]) -> LocalProduct:
    """Parse a product mirror row into a domain model."""
    return LocalProduct(
        name=str(row.get("product_name") or ""),
        brand=_optional_text(row.get("brands")),
        energy_kj=_optional_float(row.get("energy_100g")),
        protein=_optional_float(row.get("proteins_100g")),
        carbs=_optional_float(row.get("carbohydrates_100g")),
        fat=_optional_float(row.get("fat_100g")),
        fiber=_optional_float(row.get("fiber_100g")),
    )


def _parse_meal(row: dict[str, object]) -> CachedMeal:
    """Parse a meal row into a domain model."""
    return CachedMeal(
        description=str(row.get("description") or ""),
        protein=_optional_float(row.get("protein")) or 0.0,
        calories=_optional_float(row.get("calories")),
        carbs=_optional_float(row.get("carbs")),
        fat=_optional_float(row.get("fat")),
        fiber=_optional_float(row.get("fiber")),
    )


def _optional_float(value: object) -> float | None:
    """Read a numeric column, treating blanks and unparseable text as missing."""
    if value is None or value == "":
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        _logger.debug("Ignoring non-numeric column value %r", value)
        return None
    return number if math.isfinite(number) else None


def _optional_text(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
