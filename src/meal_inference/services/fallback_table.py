"""Curated per-100g nutrition values used when other sources fail."""

import logging
import re
from dataclasses import dataclass, field

from meal_inference.domain.nutrition import NutritionRecord, NutritionUnit, Provenance

_logger = logging.getLogger(__name__)

_CIQUAL = "CIQUAL reference table"
_AVERAGE = "CIQUAL category average"
_MAKER = "CIQUAL + manufacturer data"

_WORD_RE = re.compile(r"[a-z0-9àâäçéèêëîïôöûùüÿœ']+")
_QUANTITY_RE = re.compile(r"\b\d+(?:[.,]\d+)?\s*(?:x\s*\d+\s*)?(?:g|kg|ml|cl|l)?\b")
_FILLER_WORDS = {
    "flavour",
    "flavor",
    "taste",
    "goût",
    "saveur",
    "parfum",
    "of",
    "with",
    "the",
    "au",
    "aux",
    "de",
    "du",
    "des",
    "la",
    "le",
    "avec",
    "slice",
    "slices",
    "tranche",
    "tranches",
    "piece",
    "pieces",
}
_BRAND_PLACEHOLDERS = {"brand_not_visible", "marque_non_visible", "unknown"}


@dataclass(frozen=True)
class FallbackEntry:
    """One curated product or food with its per-100g values."""

    key: str
    protein: float
    calories: float
    carbs: float
    fat: float
    fiber: float
    confidence: float = 0.9
    source: str = _CIQUAL
    aliases: tuple[str, ...] = ()
    brand: str | None = None

    def names(self) -> tuple[str, ...]:
        return (self.key, *self.aliases)


# fmt: off
DEFAULT_ENTRIES: tuple[FallbackEntry, ...] = (
    # Biscuits
    FallbackEntry("prince chocolate biscuit", 6.3, 467, 65, 18, 4.2, 0.85, _MAKER,
                  ("prince chocolat", "prince goût chocolat"), "prince"),
    FallbackEntry("prince breakfast biscuit", 8.1, 456, 62, 17, 5.1, 0.85, _MAKER,
                  ("prince petit déjeuner", "prince céréales"), "prince"),
    FallbackEntry("prince whole wheat biscuit", 8.5, 445, 60, 16, 6.8, 0.85, _MAKER,
                  ("prince blé complet",), "prince"),
    FallbackEntry("petit beurre", 7.2, 435, 72, 13, 2.8, 0.85, _CIQUAL,
                  ("petit beurre lu", "butter biscuit"), "lu"),
    FallbackEntry("belvita breakfast biscuit", 8.5, 456, 64, 16, 6.2, 0.85, _CIQUAL,
                  ("belvita petit déjeuner",), "lu"),
    FallbackEntry("oreo", 4.8, 468, 71, 18, 3.1, 0.85, _CIQUAL, brand="oreo"),
    FallbackEntry("digestive biscuit", 7.1, 471, 62, 20, 6.8, 0.85),
    FallbackEntry("rusk", 11.5, 410, 72, 7.5, 4.2, 0.85, _CIQUAL,
                  ("biscotte", "cracotte")),
    FallbackEntry("rice cake", 8.2, 380, 83, 2.8, 1.2, 0.85, _CIQUAL,
                  ("galette riz",)),
    FallbackEntry("madeleine", 6.8, 465, 55, 23, 1.8, 0.85),
    FallbackEntry("cookie", 5.8, 502, 64, 24, 2.8, 0.85),
    FallbackEntry("speculoos", 6.2, 486, 72, 18, 2.5, 0.85, _CIQUAL, ("spéculoos",)),
    # Cereals
    FallbackEntry("cornflakes", 7.5, 357, 84, 0.9, 3.3, 0.85),
    FallbackEntry("muesli", 10.1, 363, 56, 8.2, 8.5, 0.85),
    FallbackEntry("granola", 9.8, 471, 64, 18, 6.8, 0.85),
    FallbackEntry("rolled oats", 13.2, 389, 56, 7.0, 10.1, 0.85, _CIQUAL,
                  ("flocons avoine", "porridge", "oatmeal")),
    FallbackEntry("special k", 15.0, 378, 71, 1.5, 3.8, 0.85),
    FallbackEntry("all bran", 14.0, 270, 46, 3.5, 29.0, 0.85),
    # Dairy
    FallbackEntry("plain yogurt", 4.0, 58, 4.5, 3.2, 0, 0.9, _CIQUAL,
                  ("yaourt nature", "natural yogurt", "yoghurt")),
    FallbackEntry("greek yogurt", 8.5, 97, 4.0, 5.8, 0, 0.9, _CIQUAL, ("yaourt grec",)),
    FallbackEntry("fruit yogurt", 3.8, 85, 13.5, 2.8, 0.2, 0.9, _CIQUAL,
                  ("yaourt aux fruits",)),
    FallbackEntry("fat free yogurt", 4.2, 45, 6.2, 0.1, 0, 0.9, _CIQUAL,
                  ("yaourt 0%",)),
    FallbackEntry("fromage blanc", 7.5, 75, 4.8, 3.2, 0, 0.9, _CIQUAL,
                  ("quark", "cottage cheese")),
    FallbackEntry("petit suisse", 6.8, 115, 4.2, 9.1, 0),
    FallbackEntry("emmental", 28.5, 382, 0.4, 30.6, 0, 0.9, _CIQUAL,
                  ("emmental cheese", "swiss cheese")),
    FallbackEntry("gruyere", 29.8, 413, 0.4, 32.3, 0, 0.9, _CIQUAL, ("gruyère",)),
    FallbackEntry("camembert", 19.8, 264, 0.5, 21.2, 0),
    FallbackEntry("brie", 20.1, 334, 0.5, 27.7, 0),
    FallbackEntry("goat cheese", 18.5, 364, 2.5, 32.7, 0, 0.9, _CIQUAL, ("chèvre",)),
    FallbackEntry("mozzarella", 18.1, 280, 2.2, 22.4, 0),
    FallbackEntry("feta", 14.2, 264, 4.1, 21.3, 0),
    FallbackEntry("comte", 27.0, 409, 1.4, 32.7, 0, 0.9, _CIQUAL, ("comté",)),
    FallbackEntry("milk", 3.2, 46, 4.6, 1.6, 0, 0.9, _CIQUAL, ("lait", "whole milk")),
    FallbackEntry("skimmed milk", 3.4, 33, 5.0, 0.1, 0, 0.9, _CIQUAL,
                  ("lait écrémé",)),
    # Meat and fish
    FallbackEntry("chicken breast", 23.0, 121, 0, 2.6, 0, 0.9, _CIQUAL,
                  ("chicken", "poulet", "blanc poulet", "grilled chicken")),
    FallbackEntry("chicken thigh", 20.1, 180, 0, 9.7, 0, 0.9, _CIQUAL,
                  ("cuisse poulet",)),
    FallbackEntry("beef steak", 26.0, 158, 0, 6.8, 0, 0.9, _CIQUAL,
                  ("beef", "boeuf", "steak")),
    FallbackEntry("pork", 25.7, 173, 0, 8.9, 0, 0.9, _CIQUAL, ("porc",)),
    FallbackEntry("ham", 20.9, 145, 0.5, 5.5, 0, 0.9, _CIQUAL,
                  ("jambon", "jambon blanc")),
    FallbackEntry("turkey", 24.1, 135, 0, 4.0, 0, 0.9, _CIQUAL, ("dinde",)),
    FallbackEntry("salmon", 25.4, 184, 0, 8.1, 0, 0.9, _CIQUAL, ("saumon",)),
    FallbackEntry("tuna", 30.0, 144, 0, 4.9, 0, 0.9, _CIQUAL, ("thon",)),
    FallbackEntry("cod", 17.8, 78, 0, 0.7, 0, 0.9, _CIQUAL, ("cabillaud", "colin")),
    FallbackEntry("sardine", 24.6, 208, 0, 11.5, 0),
    FallbackEntry("mackerel", 23.7, 205, 0, 11.9, 0, 0.9, _CIQUAL, ("maquereau",)),
    # Eggs
    FallbackEntry("egg", 12.6, 145, 0.7, 10.3, 0, 0.9, _CIQUAL,
                  ("oeuf", "boiled egg", "scrambled eggs", "omelette")),
    # Legumes, grains and bread
    FallbackEntry("lentils", 9.0, 116, 16.3, 0.4, 7.9, 0.9, _CIQUAL, ("lentilles",)),
    FallbackEntry("kidney beans", 8.7, 129, 19.7, 0.5, 6.4, 0.9, _CIQUAL,
                  ("haricots rouges",)),
    FallbackEntry("chickpeas", 8.0, 139, 22.5, 2.4, 4.8, 0.9, _CIQUAL,
                  ("pois chiches",)),
    FallbackEntry("quinoa", 4.4, 112, 18.5, 1.8, 2.8),
    FallbackEntry("rice", 2.7, 130, 28.2, 0.3, 1.4, 0.9, _CIQUAL,
                  ("riz", "white rice")),
    FallbackEntry("brown rice", 2.6, 112, 22.9, 0.9, 1.8, 0.9, _CIQUAL,
                  ("riz complet",)),
    FallbackEntry("pasta", 5.0, 131, 25.0, 0.9, 1.8, 0.9, _CIQUAL, ("pâtes",)),
    FallbackEntry("bread", 8.8, 285, 55.7, 3.5, 3.8, 0.9, _CIQUAL,
                  ("pain", "baguette", "white bread")),
    FallbackEntry("whole wheat bread", 8.5, 247, 45.1, 3.5, 7.4, 0.9, _CIQUAL,
                  ("pain complet", "wholemeal bread", "whole grain bread")),
    FallbackEntry("sandwich bread", 7.5, 280, 50.6, 4.9, 3.6, 0.9, _CIQUAL,
                  ("pain de mie", "toast bread")),
    # Fruit and vegetables
    FallbackEntry("apple", 0.3, 54, 11.6, 0.4, 2.4, 0.9, _CIQUAL, ("pomme",)),
    FallbackEntry("banana", 1.2, 90, 20.0, 0.2, 2.7, 0.9, _CIQUAL, ("banane",)),
    FallbackEntry("avocado", 1.9, 169, 1.8, 14.8, 6.3, 0.9, _CIQUAL, ("avocat",)),
    FallbackEntry("broccoli", 3.3, 29, 2.4, 0.4, 2.4, 0.9, _CIQUAL, ("brocoli",)),
    # Snacks
    FallbackEntry("potato chips", 6.6, 536, 49.7, 34.6, 4.8, 0.85, _CIQUAL,
                  ("chips", "crisps")),
    FallbackEntry("pringles", 4.4, 536, 50.0, 35.0, 4.0, 0.85),
    FallbackEntry("crackers", 9.9, 434, 71.3, 11.1, 3.1, 0.85),
    FallbackEntry("walnuts", 20.0, 618, 11.2, 51.5, 5.0, 0.9, _CIQUAL, ("noix",)),
    FallbackEntry("almonds", 25.4, 634, 4.6, 53.4, 12.9, 0.9, _CIQUAL, ("amandes",)),
    FallbackEntry("peanuts", 23.7, 623, 7.5, 49.6, 8.0, 0.9, _CIQUAL,
                  ("cacahuètes",)),
    FallbackEntry("nutella", 6.3, 539, 57.5, 30.9, 4.4, 0.85, _MAKER,
                  ("hazelnut spread", "pâte tartiner"), "nutella"),
    # Drinks
    FallbackEntry("orange juice", 0.7, 45, 10.4, 0.2, 0.2, 0.9, _CIQUAL,
                  ("jus orange",)),
    FallbackEntry("soy milk", 3.3, 43, 2.5, 1.8, 0.5, 0.9, _CIQUAL,
                  ("lait soja", "soya drink")),
    FallbackEntry("drinking chocolate", 3.4, 80, 11.0, 2.0, 0.6, 0.85, _CIQUAL,
                  ("chocolat chaud", "hot chocolate")),
    # Prepared dishes
    FallbackEntry("pizza", 11.0, 266, 33.0, 10.4, 2.3, 0.8, _AVERAGE),
    FallbackEntry("hamburger", 16.0, 295, 24.0, 15.5, 2.8, 0.8, _AVERAGE, ("burger",)),
    FallbackEntry("sandwich", 8.5, 250, 35.0, 8.2, 3.1, 0.8, _AVERAGE),
    FallbackEntry("quiche", 9.8, 314, 21.0, 21.5, 1.8, 0.8, _AVERAGE),
    FallbackEntry("lasagna", 12.5, 165, 14.8, 7.8, 1.5, 0.8, _AVERAGE, ("lasagne",)),
)
# fmt: on

# Category word -> entry used when nothing closer matches.
DEFAULT_CATEGORIES: dict[str, str] = {
    "biscuit": "prince chocolate biscuit",
    "cookie": "cookie",
    "yogurt": "plain yogurt",
    "yoghurt": "plain yogurt",
    "yaourt": "plain yogurt",
    "cheese": "emmental",
    "fromage": "emmental",
    "meat": "chicken breast",
    "viande": "chicken breast",
    "fish": "salmon",
    "poisson": "salmon",
    "cereal": "cornflakes",
    "céréales": "cornflakes",
    "bread": "bread",
    "pain": "bread",
    "chips": "potato chips",
    "crisps": "potato chips",
}


@dataclass
class FallbackTable:
    """Look up hand-verified values by exact name, keywords, then category."""

    entries: tuple[FallbackEntry, ...] = DEFAULT_ENTRIES
    categories: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_CATEGORIES))
    min_keyword_score: float = 0.3
    brand_bonus: float = 0.5

    def lookup(self, name: str, brand: str | None = None) -> NutritionRecord | None:
        """Return per-100g values for the closest curated entry, if any."""
        term = normalize_term(name, brand)
        if not term:
            return None

        for entry in self.entries:
            if term in entry.names():
                _logger.info("Fallback exact match %r", entry.key)
                return _to_record(entry)

        scored = self._score_keywords(term)
        if scored is not None:
            entry, score = scored
            _logger.info("Fallback keyword match %r (score=%.2f)", entry.key, score)
            return _to_record(entry)

        by_key = {entry.key: entry for entry in self.entries}
        words = set(term.split())
        for category, key in self.categories.items():
            if _has_word(words, category) and key in by_key:
                _logger.info("Fallback category match %r -> %r", category, key)
                return _to_record(by_key[key])

        _logger.info("No fallback values for %r", term)
        return None

    def _score_keywords(self, term: str) -> tuple[FallbackEntry, float] | None:
        search_words = [word for word in term.split() if len(word) > 2]
        if not search_words:
            return None
        best: tuple[FallbackEntry, float] | None = None
        for entry in self.entries:
            score = max(
                keyword_score(search_words, candidate) for candidate in entry.names()
            )
            if entry.brand and entry.brand in term.split():
                score += self.brand_bonus / len(search_words)
            if score <= self.min_keyword_score:
                continue
            if best is None or score > best[1]:
                best = (entry, score)
        return best


def normalize_term(name: str, brand: str | None = None) -> str:
    """Lowercase, prefix the brand and drop quantities and filler words."""
    term = name.lower()
    if brand and brand.lower() not in _BRAND_PLACEHOLDERS:
        brand_lower = brand.lower()
        if brand_lower not in term:
            term = f"{brand_lower} {term}"
    term = _QUANTITY_RE.sub(" ", term)
    words = [word for word in _WORD_RE.findall(term) if word not in _FILLER_WORDS]
    return " ".join(words)


def keyword_score(search_words: list[str], key: str) -> float:
    """Share of search words found (as substrings either way) in the key."""
    key_words = [word for word in key.split() if len(word) > 2]
    if not key_words:
        return 0.0
    matched = 0
    for search_word in search_words:
        if any(
            key_word in search_word or search_word in key_word
            for key_word in key_words
        ):
            matched += 1
    return matched / len(search_words)


def _has_word(words: set[str], category: str) -> bool:
    return any(word == category or word == f"{category}s" for word in words)


def _to_record(entry: FallbackEntry) -> NutritionRecord:
    return NutritionRecord(
        name=entry.key,
        protein=entry.protein,
        calories=entry.calories,
        carbs=entry.carbs,
        fat=entry.fat,
        fiber=entry.fiber,
        unit=NutritionUnit.PER_100G,
        provenance=Provenance.FALLBACK_TABLE,
        confidence=entry.confidence,
        source=entry.source,
        brand=entry.brand,
    )
