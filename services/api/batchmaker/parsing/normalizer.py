"""Workflow normalizer.

Takes a structurally valid ``RawRecipe`` (which may still be full of
missing or mistyped fields) and produces a ``ParsedRecipe`` that always
satisfies the workflow invariants:

- ``steps[0]`` is the synthetic "Prepare Ingredients" step carrying every
  recipe ingredient as an encoded checklist
- model steps follow, renumbered 1..N in their original relative order
- ``totalEstimatedMinutes`` is the sum of durations of steps 1..N

Model-supplied totals are ignored; they are untrusted and tend to include
step 0 or inferred resting time twice.
"""
import math
import re
from typing import Any, List, Optional

from .ingredient_codec import UNKNOWN_INGREDIENT, decode_ingredient, encode_ingredient, encode_ingredients
from .schemas import (
    PREPARE_INGREDIENTS_DESCRIPTION,
    PREPARE_INGREDIENTS_TITLE,
    ParsedIngredient,
    ParsedRecipe,
    ParsedStep,
    RawRecipe,
    RawStep,
)

UNKNOWN_UNIT = "unknown"
VALID_TEMPERATURE_UNITS = ("C", "F")

_MIXED_FRACTION = re.compile(r"^(\d+)\s+(\d+)\s*/\s*(\d+)$")
_FRACTION = re.compile(r"^(\d+)\s*/\s*(\d+)$")

_UNICODE_FRACTIONS = {
    "½": "1/2", "⅓": "1/3", "⅔": "2/3", "¼": "1/4", "¾": "3/4",
    "⅕": "1/5", "⅖": "2/5", "⅗": "3/5", "⅘": "4/5", "⅙": "1/6",
    "⅚": "5/6", "⅛": "1/8", "⅜": "3/8", "⅝": "5/8", "⅞": "7/8",
}


def _clean_str(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def _to_number(value: Any) -> Optional[float]:
    """Coerce numbers and numeric strings; anything else is ``None``."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _format_amount(value: Any) -> str:
    """Amounts are kept as strings; ``2.0`` becomes ``"2"``."""
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return _clean_str(value)


def numeric_amount(ingredient: ParsedIngredient) -> float:
    """Numeric view of an ingredient amount.

    Handles decimals, ``1/2``, ``1 1/2`` and unicode fractions like ``½``.
    Amounts such as "to taste" give ``0``.
    """
    text = ingredient.amount.strip()
    if not text:
        return 0.0

    # "1½" -> "1 1/2"
    for glyph, fraction in _UNICODE_FRACTIONS.items():
        text = text.replace(glyph, f" {fraction}")
    text = text.strip()

    number = _to_number(text)
    if number is not None:
        return number

    match = _MIXED_FRACTION.match(text)
    if match:
        whole, num, den = (int(g) for g in match.groups())
        return whole + num / den if den else 0.0

    match = _FRACTION.match(text)
    if match:
        num, den = (int(g) for g in match.groups())
        return num / den if den else 0.0

    return 0.0


def normalize_ingredient(raw: Any) -> ParsedIngredient:
    if isinstance(raw, str):
        return decode_ingredient(raw)

    if isinstance(raw, dict):
        name = _clean_str(raw.get("name")) or UNKNOWN_INGREDIENT
        unit = _clean_str(raw.get("unit")) or UNKNOWN_UNIT
        return ParsedIngredient(name=name, amount=_format_amount(raw.get("amount")), unit=unit)

    return ParsedIngredient(name=UNKNOWN_INGREDIENT, amount="", unit=UNKNOWN_UNIT)


def _normalize_step_ingredients(raw: Any) -> List[str]:
    if not isinstance(raw, list):
        return []
    encoded = []
    for item in raw:
        if isinstance(item, str):
            if item.strip():
                encoded.append(item.strip())
        elif isinstance(item, dict):
            encoded.append(encode_ingredient(normalize_ingredient(item)))
    return encoded


def _is_prepare_step(step: RawStep) -> bool:
    return _clean_str(step.title).lower() == PREPARE_INGREDIENTS_TITLE.lower()


def normalize_step(raw: RawStep, position: int) -> ParsedStep:
    """Coerce one model step. ``position`` is its 1-based index in the list."""
    order = _to_number(raw.order)
    order = int(order) if order is not None and order >= 1 else position

    duration = _to_number(raw.duration_minutes)
    if duration is None or duration < 0:
        duration = 0

    # "c" and "f" are accepted as C and F
    temperature_unit = _clean_str(raw.temperature_unit).upper()
    notes = _clean_str(raw.notes)

    return ParsedStep(
        order=order,
        title=_clean_str(raw.title),
        description=_clean_str(raw.description),
        duration_minutes=duration,
        temperature=_to_number(raw.temperature),
        temperature_unit=temperature_unit if temperature_unit in VALID_TEMPERATURE_UNITS else None,
        notes=notes or None,
        ingredients_for_step=_normalize_step_ingredients(raw.ingredients_for_step),
    )


def prepare_ingredients_step(ingredients: List[ParsedIngredient]) -> ParsedStep:
    return ParsedStep(
        order=0,
        title=PREPARE_INGREDIENTS_TITLE,
        description=PREPARE_INGREDIENTS_DESCRIPTION,
        duration_minutes=0,
        ingredients_for_step=encode_ingredients(ingredients),
    )


def _normalize_servings(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (str, int, float)):
        servings = _format_amount(value)
        return servings or None
    return None


def normalize_recipe(raw: RawRecipe) -> ParsedRecipe:
    raw_ingredients = raw.ingredients if isinstance(raw.ingredients, list) else []
    ingredients = [normalize_ingredient(i) for i in raw_ingredients]

    model_steps = [s for s in raw.steps if not _is_prepare_step(s)]
    steps = [normalize_step(s, position) for position, s in enumerate(model_steps, start=1)]

    # sorted() is stable, so equal orders keep their original positions
    steps = sorted(steps, key=lambda s: s.order)
    for new_order, step in enumerate(steps, start=1):
        step.order = new_order
        if not step.title:
            step.title = f"Step {new_order}"

    steps.insert(0, prepare_ingredients_step(ingredients))

    total = sum((s.duration_minutes or 0) for s in steps if s.order >= 1)

    return ParsedRecipe(
        recipe_name=raw.recipe_name,
        description=_clean_str(raw.description),
        ingredients=ingredients,
        steps=steps,
        total_estimated_minutes=total,
        servings=_normalize_servings(raw.servings),
    )
