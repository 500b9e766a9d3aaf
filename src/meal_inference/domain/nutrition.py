"""Nutrition domain models."""

from dataclasses import dataclass
from enum import StrEnum

KJ_PER_KCAL = 4.184


class NutritionUnit(StrEnum):
    """Reference quantity the nutrient values refer to."""

    PER_100G = "per_100g"
    PER_SERVING = "per_serving"


class Provenance(StrEnum):
    """Where a nutrition record came from."""

    OFFICIAL_LABEL = "official_label"
    REMOTE_DATABASE = "remote_database"
    LOCAL_CACHE = "local_cache"
    FALLBACK_TABLE = "fallback_table"


@dataclass(frozen=True)
class MacroTotals:
    """Nutrient totals for the portion actually eaten."""

    protein: float
    calories: float | None
    carbs: float | None
    fat: float | None
    fiber: float | None


@dataclass(frozen=True)
class NutritionRecord:
    """Nutrition facts for a reference quantity, tagged with provenance."""

    name: str
    protein: float
    calories: float | None
    carbs: float | None
    fat: float | None
    fiber: float | None
    unit: NutritionUnit
    provenance: Provenance
    confidence: float
    source: str
    brand: str | None = None
    exact: bool = False

    def for_portion(self, weight_grams: float) -> MacroTotals:
        """Return the totals for a portion of the given weight."""
        if self.unit is NutritionUnit.PER_SERVING:
            return MacroTotals(
                protein=round(self.protein, 1),
                calories=_round_calories(self.calories),
                carbs=_round_optional(self.carbs),
                fat=_round_optional(self.fat),
                fiber=_round_optional(self.fiber),
            )
        return MacroTotals(
            protein=scale_nutrient(self.protein, weight_grams),
            calories=(
                scale_calories(self.calories, weight_grams)
                if self.calories is not None
                else None
            ),
            carbs=_scale_optional(self.carbs, weight_grams),
            fat=_scale_optional(self.fat, weight_grams),
            fiber=_scale_optional(self.fiber, weight_grams),
        )


@dataclass(frozen=True)
class LocalProduct:
    """Row of the local product mirror; values are per 100 g, energy in kJ."""

    name: str
    brand: str | None
    energy_kj: float | None
    protein: float | None
    carbs: float | None
    fat: float | None
    fiber: float | None


@dataclass(frozen=True)
class CachedMeal:
    """Previously resolved meal description with its totals."""

    description: str
    protein: float
    calories: float | None
    carbs: float | None
    fat: float | None
    fiber: float | None


@dataclass(frozen=True)
class PlausibilityRule:
    """Cutoffs below which nutrition values are considered implausible."""

    min_protein: float = 1.0
    min_calories: float = 50.0

    def is_implausible(self, protein: float | None, calories: float | None) -> bool:
        """Return True when values look like a failed or empty estimate."""
        protein_value = protein or 0.0
        calories_value = calories or 0.0
        if protein_value <= 0 or calories_value <= 0:
            return True
        return protein_value < self.min_protein and calories_value < self.min_calories


def scale_nutrient(value_per_100g: float, weight_grams: float) -> float:
    """Scale a per-100g nutrient to a portion, rounded to one decimal."""
    return round(value_per_100g * weight_grams / 100, 1)


def scale_calories(kcal_per_100g: float, weight_grams: float) -> int:
    """Scale per-100g calories to a portion, rounded to the nearest integer."""
    return round(kcal_per_100g * weight_grams / 100)


def per_100g(value: float, weight_grams: float) -> float:
    """Inverse of scale_nutrient: portion value back to per-100g."""
    if weight_grams <= 0:
        raise ValueError("Portion weight must be positive")
    return value * 100 / weight_grams


def kj_to_kcal(energy_kj: float) -> float:
    return round(energy_kj / KJ_PER_KCAL, 1)


def _scale_optional(value: float | None, weight_grams: float) -> float | None:
    if value is None:
        return None
    return scale_nutrient(value, weight_grams)


def _round_optional(value: float | None) -> float | None:
    if value is None:
        return None
    return round(value, 1)


def _round_calories(value: float | None) -> int | None:
    if value is None:
        return None
    return round(value)
