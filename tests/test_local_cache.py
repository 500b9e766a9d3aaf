"""Tests for local product and meal similarity search."""

from meal_inference.domain.nutrition import (
    CachedMeal,
    LocalProduct,
    NutritionUnit,
    Provenance,
)
from meal_inference.services.local_cache import (
    LocalCacheService,
    meal_queries,
    similarity,
)
from tests.conftest import InMemoryLocalStore

GREEK_YOGURT = LocalProduct(
    name="Greek yogurt",
    brand="Fage",
    energy_kj=406,
    protein=9.0,
    carbs=3.0,
    fat=5.0,
    fiber=None,
)


def test_find_product_by_brand_and_name() -> None:
    service = LocalCacheService(InMemoryLocalStore(products=[GREEK_YOGURT]))

    record = service.find_product("Greek yogurt", "Fage")

    assert record is not None
    assert record.protein == 9.0
    assert record.calories == 97.0
    assert record.brand == "Fage"
    assert record.unit is NutritionUnit.PER_100G
    assert record.provenance is Provenance.LOCAL_CACHE
    assert record.confidence == 0.85
    assert record.exact is True


def test_dissimilar_products_are_not_matched() -> None:
    drink = LocalProduct(
        name="Strawberry yogurt drink",
        brand=None,
        energy_kj=300,
        protein=3.0,
        carbs=12.0,
        fat=1.0,
        fiber=None,
    )
    service = LocalCacheService(InMemoryLocalStore(products=[drink]))

    assert service.find_product("yogurt") is None


def test_products_without_protein_are_skipped() -> None:
    empty = LocalProduct(
        name="Greek yogurt",
        brand=None,
        energy_kj=406,
        protein=None,
        carbs=None,
        fat=None,
        fiber=None,
    )
    service = LocalCacheService(InMemoryLocalStore(products=[empty]))

    assert service.find_product("Greek yogurt") is None


def test_find_meal_returns_serving_totals() -> None:
    meal = CachedMeal(
        description="2 boiled eggs and toast",
        protein=15.0,
        calories=250.0,
        carbs=20.0,
        fat=11.0,
        fiber=2.0,
    )
    service = LocalCacheService(InMemoryLocalStore(meals=[meal]))

    record = service.find_meal("2 boiled eggs and toast")

    assert record is not None
    assert record.unit is NutritionUnit.PER_SERVING
    assert record.protein == 15.0
    assert record.exact is False
    assert service.find_meal("3 boiled eggs and toast") is None


def test_similarity_requires_matching_quantities() -> None:
    assert similarity("2 boiled eggs", "2 boiled eggs") == 1.0
    assert similarity("2 boiled eggs", "3 boiled eggs") == 0.0
    assert similarity("rice with chicken", "chicken rice") == 1.0
    assert similarity("", "rice") == 0.0


def test_meal_queries_drop_quantities_last() -> None:
    queries = meal_queries("200g de riz avec poulet")

    assert queries[0] == "200g de riz avec poulet"
    assert queries[-1] == "de riz avec poulet"
