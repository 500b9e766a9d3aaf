"""Prompt texts sent to the language model."""

from dataclasses import dataclass

_MEAL_JSON_SHAPE = """{
  "foods": ["food names, in the order they were mentioned or seen"],
  "protein": number (grams for the whole portion),
  "calories": number (kcal for the whole portion),
  "carbs": number, "fat": number, "fiber": number,
  "confidence": number between 0 and 1,
  "explanation": "how the values were obtained",
  "suggestions": ["optional advice"],
  "breakdown": {"food name": {"protein": number, "calories": number,
                              "quantity": "e.g. 2 slices, 150g"}},
  "productType": "PACKAGED_PRODUCT" | "NATURAL_FOOD" | "COOKED_DISH",
  "productName": "full product name or null",
  "brand": "brand or brand_not_visible",
  "packageContents": "e.g. 4x125g or null",
  "officialNutrition": {"protein": number, "calories": number, "carbs": number,
                        "fat": number, "fiber": number,
                        "unit": "per_100g" | "per_serving", "isFromLabel": true} or null
}"""

_SYSTEM_ROLE = (
    "You are a nutrition assistant that estimates the protein and calorie content "
    "of meals. Answer with a single JSON object and nothing else."
)


@dataclass(frozen=True)
class Prompt:
    """System and user text for one completion call."""

    system: str
    user: str
    temperature: float | None = None


def text_analysis_prompt(description: str) -> Prompt:
    """Prompt for a free-text meal description."""
    system = (
        f"{_SYSTEM_ROLE}\n"
        "Estimate the nutrition of exactly the quantities described. "
        "When no quantity is given, assume one usual portion and say so in the "
        "explanation. Use this shape:\n"
        f"{_MEAL_JSON_SHAPE}\n"
        "officialNutrition must be null for text descriptions."
    )
    return Prompt(system=system, user=f"Meal description: {description.strip()}")


def image_analysis_prompt(caption: str | None = None) -> Prompt:
    """Prompt for single-shot analysis of a meal or package photo."""
    system = (
        f"{_SYSTEM_ROLE}\n"
        "Identify the foods in the photo and estimate the portion shown. "
        "If a nutrition table is legible on a package, copy its numbers into "
        "officialNutrition with the unit printed on the label and isFromLabel true. "
        "Also report \"imageQuality\": \"excellent\" | \"good\" | \"fair\" | "
        "\"poor\" and "
        "\"detectedItems\": [visible items]. Use this shape:\n"
        f"{_MEAL_JSON_SHAPE}"
    )
    user = "Analyse this meal photo."
    if caption:
        user = f"{user} Additional context from the user: {caption.strip()}"
    return Prompt(system=system, user=user)


def transcription_prompt() -> Prompt:
    """Prompt for verbatim transcription of on-package text."""
    system = (
        "You transcribe text printed on food packaging. Copy every visible word and "
        "number verbatim, including the nutrition table, without interpreting or "
        "summarising it. Answer with a single JSON object: "
        '{"text": "all transcribed text", "language": "detected language", '
        '"legibility": "excellent" | "good" | "fair" | "poor"}'
    )
    return Prompt(
        system=system,
        user="Transcribe all visible text on this food package.",
        temperature=0.1,
    )


def interpretation_prompt(extracted_text: str, caption: str | None = None) -> Prompt:
    """Prompt that interprets previously transcribed package text."""
    system = (
        "You identify food products from text transcribed from their packaging. "
        "Answer with a single JSON object: "
        '{"productName": "name", "brand": "brand or brand_not_visible", '
        '"category": "product category", '
        '"productType": "PACKAGED_PRODUCT" | "NATURAL_FOOD" | "COOKED_DISH", '
        '"ingredients": ["..."], "packageContents": "e.g. 4x125g or null", '
        '"nutrition": {"protein": number, "calories": number, "carbs": number, '
        '"fat": number, "fiber": number, "unit": "per_100g" | "per_serving", '
        '"isFromLabel": true} or null, "confidence": number between 0 and 1}. '
        "Only fill nutrition with numbers that appear in the text."
    )
    user = f'Package text:\n"""\n{extracted_text.strip()}\n"""'
    if caption:
        user = f"{user}\nAdditional context from the user: {caption.strip()}"
    return Prompt(system=system, user=user, temperature=0.2)
