"""Portion weight estimation from quantity phrases and product hints."""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from meal_inference.domain.portions import PortionBasis, PortionEstimate

_logger = logging.getLogger(__name__)

_NUMBER = r"(\d+(?:[.,]\d+)?)"

_NUMBER_WORDS = {
    "a": 1.0,
    "an": 1.0,
    "one": 1.0,
    "un": 1.0,
    "une": 1.0,
    "half": 0.5,
    "two": 2.0,
    "deux": 2.0,
    "three": 3.0,
    "trois": 3.0,
    "four": 4.0,
    "quatre": 4.0,
    "five": 5.0,
    "cinq": 5.0,
    "six": 6.0,
}

_MASS_UNITS = {
    "kg": 1000.0,
    "kilo": 1000.0,
    "kilos": 1000.0,
    "g": 1.0,
    "gr": 1.0,
    "gram": 1.0,
    "grams": 1.0,
    "gramme": 1.0,
    "grammes": 1.0,
    "oz": 28.35,
    "lb": 453.6,
}

_VOLUME_UNITS = {
    "l": 1000.0,
    "litre": 1000.0,
    "liter": 1000.0,
    "litres": 1000.0,
    "liters": 1000.0,
    "dl": 100.0,
    "cl": 10.0,
    "ml": 1.0,
}

# Grams per counted unit.
_COUNT_UNITS = {
    "slice": 25.0,
    "tranche": 25.0,
    "egg": 50.0,
    "oeuf": 50.0,
    "biscuit": 10.0,
    "cookie": 10.0,
    "pot": 125.0,
    "yogurt": 125.0,
    "yoghurt": 125.0,
    "yaourt": 125.0,
    "can": 330.0,
    "canette": 330.0,
    "bottle": 500.0,
    "bouteille": 500.0,
    "bar": 40.0,
    "barre": 40.0,
    "tablespoon": 15.0,
    "tbsp": 15.0,
    "teaspoon": 5.0,
    "tsp": 5.0,
    "cup": 240.0,
    "glass": 200.0,
    "verre": 200.0,
    "banana": 120.0,
    "apple": 150.0,
    "piece": 50.0,
}

_VAGUE_UNITS = {
    "plate": 300.0,
    "assiette": 300.0,
    "bowl": 250.0,
    "bol": 250.0,
    "handful": 30.0,
    "serving": 100.0,
    "portion": 100.0,
}

_MULTIPACK_RE = re.compile(rf"(\d+)\s*[x×]\s*{_NUMBER}\s*(g|ml|cl)\b")
_MEASURE_RE = re.compile(rf"{_NUMBER}\s*([a-z]+)\b")
_COUNT_RE = re.compile(
    r"\b(?=(\d+(?:[.,]\d+)?|[a-z]+)\s+(?:(?:of|de)\s+)?([a-z]+)\b)"
)


@dataclass(frozen=True)
class ParsedQuantity:
    """Weight read from a quantity phrase, with the parser's certainty."""

    grams: float
    confidence: float
    phrase: str
    per_unit_of_pack: bool = False


class QuantityParser:
    """Parse numeric quantity and unit phrases such as '2 slices' or '330ml can'."""

    mass_confidence = 0.95
    volume_confidence = 0.9
    multipack_confidence = 0.9
    count_confidence = 0.8
    vague_confidence = 0.65

    def parse(self, text: str) -> ParsedQuantity | None:
        """Return the first quantity found, in order of parser certainty."""
        lowered = text.lower()
        multipack = _MULTIPACK_RE.search(lowered)
        if multipack:
            size = _to_float(multipack.group(2)) * (
                10.0 if multipack.group(3) == "cl" else 1.0
            )
            if size > 0:
                return ParsedQuantity(
                    grams=size,
                    confidence=self.multipack_confidence,
                    phrase=multipack.group(0),
                    per_unit_of_pack=True,
                )
        for match in _MEASURE_RE.finditer(lowered):
            amount = _to_float(match.group(1))
            unit = match.group(2)
            if amount <= 0:
                continue
            if unit in _MASS_UNITS:
                return ParsedQuantity(
                    grams=amount * _MASS_UNITS[unit],
                    confidence=self.mass_confidence,
                    phrase=match.group(0),
                )
            if unit in _VOLUME_UNITS:
                return ParsedQuantity(
                    grams=amount * _VOLUME_UNITS[unit],
                    confidence=self.volume_confidence,
                    phrase=match.group(0),
                )
        for match in _COUNT_RE.finditer(lowered):
            count = _count_value(match.group(1))
            if count is None or count <= 0:
                continue
            phrase = f"{match.group(1)} {match.group(2)}"
            for unit in _singular_forms(match.group(2)):
                if unit in _COUNT_UNITS:
                    return ParsedQuantity(
                        grams=count * _COUNT_UNITS[unit],
                        confidence=self.count_confidence,
                        phrase=phrase,
                    )
                if unit in _VAGUE_UNITS:
                    return ParsedQuantity(
                        grams=count * _VAGUE_UNITS[unit],
                        confidence=self.vague_confidence,
                        phrase=phrase,
                    )
        return None


@dataclass(frozen=True)
class ContainerRule:
    """Canonical weight of a named container, matched by keywords."""

    label: str
    grams: float
    pattern: re.Pattern[str]
    requires: re.Pattern[str] | None = None

    def matches(self, text: str) -> bool:
        if not self.pattern.search(text):
            return False
        return self.requires is None or bool(self.requires.search(text))


def _words(*words: str) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(words) + r")s?\b")


CONTAINER_RULES: tuple[ContainerRule, ...] = (
    ContainerRule(
        "bread slice",
        25.0,
        _words("slice", "tranche"),
        _words("bread", "pain", "toast"),
    ),
    ContainerRule("biscuit", 10.0, _words("biscuit", "cookie")),
    ContainerRule("yogurt cup", 125.0, _words("yogurt", "yoghurt", "yaourt")),
    ContainerRule(
        "cheese portion", 30.0, _words("portion"), _words("cheese", "fromage")
    ),
    ContainerRule("standard can", 330.0, _words("can", "canette", "33cl")),
    ContainerRule("bottle", 500.0, _words("bottle", "bouteille")),
)

# Single-serving substitutes for whole-package weights found in product names.
_SERVING_SUBSTITUTES: tuple[tuple[re.Pattern[str], float, str], ...] = (
    (_words("bread", "pain", "toast", "brioche"), 25.0, "one slice"),
    (_words("biscuit", "cookie", "cracker"), 30.0, "one serving of biscuits"),
    (_words("yogurt", "yoghurt", "yaourt"), 125.0, "one yogurt cup"),
    (_words("cheese", "fromage"), 30.0, "one cheese portion"),
)


@dataclass
class PortionEstimator:
    """Infer the weight actually eaten; the first matching heuristic wins."""

    parser: QuantityParser
    explicit_min_confidence: float = 0.7
    breakdown_min_confidence: float = 0.6
    product_name_min_confidence: float = 0.5
    container_confidence: float = 0.7
    whole_package_threshold_g: float = 100.0
    single_serving_default_g: float = 30.0
    default_weight_g: float = 100.0
    default_confidence: float = 0.3
    containers: tuple[ContainerRule, ...] = CONTAINER_RULES

    def estimate(
        self,
        food_descriptions: Sequence[str],
        breakdown_hints: Sequence[str] = (),
        product_name_hints: Sequence[str] = (),
    ) -> PortionEstimate:
        """Return a positive portion weight with a confidence tier."""
        text = " ".join(item for item in food_descriptions if item).lower()

        parsed = self.parser.parse(text) if text else None
        if parsed and parsed.confidence >= self.explicit_min_confidence:
            return PortionEstimate(
                weight_grams=parsed.grams,
                confidence=parsed.confidence,
                basis=PortionBasis.EXPLICIT_QUANTITY,
                label=parsed.phrase,
            )

        for rule in self.containers:
            if rule.matches(text):
                return PortionEstimate(
                    weight_grams=rule.grams,
                    confidence=self.container_confidence,
                    basis=PortionBasis.CONTAINER,
                    label=rule.label,
                )

        for hint in breakdown_hints:
            parsed = self.parser.parse(hint) if hint else None
            if parsed and parsed.confidence >= self.breakdown_min_confidence:
                return PortionEstimate(
                    weight_grams=parsed.grams,
                    confidence=parsed.confidence,
                    basis=PortionBasis.BREAKDOWN,
                    label=parsed.phrase,
                )

        name_estimate = self._from_product_names(product_name_hints)
        if name_estimate is not None:
            return name_estimate

        _logger.info("No portion cue found, assuming %sg", self.default_weight_g)
        return PortionEstimate(
            weight_grams=self.default_weight_g,
            confidence=self.default_confidence,
            basis=PortionBasis.DEFAULT,
            label="default portion",
        )

    def _from_product_names(self, hints: Sequence[str]) -> PortionEstimate | None:
        for hint in hints:
            if not hint:
                continue
            parsed = self.parser.parse(hint)
            if parsed is None or parsed.confidence < self.product_name_min_confidence:
                continue
            fits_portion = parsed.grams <= self.whole_package_threshold_g
            if parsed.per_unit_of_pack or fits_portion:
                return PortionEstimate(
                    weight_grams=parsed.grams,
                    confidence=0.5,
                    basis=PortionBasis.PRODUCT_NAME,
                    label=parsed.phrase,
                )
            grams, label = self._single_serving(hint.lower())
            _logger.info(
                "Package weight %sg in %r exceeds a portion, using %sg",
                parsed.grams,
                hint,
                grams,
            )
            return PortionEstimate(
                weight_grams=grams,
                confidence=0.4,
                basis=PortionBasis.PRODUCT_NAME,
                label=label,
            )
        return None

    def _single_serving(self, text: str) -> tuple[float, str]:
        for pattern, grams, label in _SERVING_SUBSTITUTES:
            if pattern.search(text):
                return grams, label
        return self.single_serving_default_g, "one serving"


def _to_float(raw: str) -> float:
    return float(raw.replace(",", "."))


def _count_value(raw: str) -> float | None:
    if raw[0].isdigit():
        return _to_float(raw)
    return _NUMBER_WORDS.get(raw)


def _singular_forms(word: str) -> list[str]:
    forms = [word]
    if word.endswith("es"):
        forms.append(word[:-2])
    if word.endswith("s"):
        forms.append(word[:-1])
    return forms
