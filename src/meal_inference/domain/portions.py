"""Portion weight models."""

from dataclasses import dataclass
from enum import StrEnum


class PortionBasis(StrEnum):
    """Which heuristic produced a portion estimate."""

    EXPLICIT_QUANTITY = "explicit_quantity"
    CONTAINER = "container"
    BREAKDOWN = "breakdown"
    PRODUCT_NAME = "product_name"
    DEFAULT = "default"


@dataclass(frozen=True)
class PortionEstimate:
    """Estimated weight of the quantity actually eaten."""

    weight_grams: float
    confidence: float
    basis: PortionBasis
    label: str = ""

    def __post_init__(self) -> None:
        if self.weight_grams <= 0:
            raise ValueError("Portion weight must be positive")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError("Portion confidence must be within [0, 1]")

    def describe(self) -> str:
        """Short human-readable description used in explanations."""
        weight = f"{self.weight_grams:g}g"
        if self.label:
            return f"{weight} ({self.label})"
        return weight
