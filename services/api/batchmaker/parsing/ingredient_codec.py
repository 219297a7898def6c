"""Ingredient string codec.

Ingredients travel between the parser and the apps as flat strings:

    "flour: 2 cups"   -> name="flour", amount="2", unit="cups"
    "eggs: 3"         -> name="eggs",  amount="3", unit=""
    "salt:  pinch"    -> name="salt",  amount="",  unit="pinch"
    "salt:"           -> name="salt",  amount="",  unit=""
    "butter"          -> name="butter" (no colon, no amount/unit)

Only the first colon is a delimiter. A name that itself contains a colon
cannot round-trip; that is a known limit of the format, not something to
patch over here.
"""
from typing import Iterable, List

from .schemas import ParsedIngredient

UNKNOWN_INGREDIENT = "Unknown ingredient"


def encode_ingredient(ingredient: ParsedIngredient) -> str:
    """Encode an ingredient as ``"name: amount unit"``.

    The colon is always emitted so the string decodes back into the same
    three fields. A unit without an amount keeps the amount slot empty,
    which shows up as two spaces after the colon.
    """
    encoded = f"{ingredient.name}:"
    if ingredient.amount or ingredient.unit:
        encoded += f" {ingredient.amount}"
    if ingredient.unit:
        encoded += f" {ingredient.unit}"
    return encoded


def decode_ingredient(raw: str) -> ParsedIngredient:
    """Decode an encoded ingredient string.

    One separator space after the colon is dropped, then the rest is split
    on its first space: the first token is the amount (empty when a second
    space follows the colon), the remainder is the unit.
    """
    colon_idx = raw.find(":")
    if colon_idx == -1:
        return ParsedIngredient(name=raw.strip() or UNKNOWN_INGREDIENT, amount="", unit="")

    name = raw[:colon_idx].strip()
    rest = raw[colon_idx + 1:].rstrip()
    if rest.startswith(" "):
        rest = rest[1:]

    amount, _, unit = rest.partition(" ")
    return ParsedIngredient(
        name=name or UNKNOWN_INGREDIENT,
        amount=amount.strip(),
        unit=unit.strip(),
    )


def encode_ingredients(ingredients: Iterable[ParsedIngredient]) -> List[str]:
    return [encode_ingredient(i) for i in ingredients]


def decode_ingredients(raw_items: Iterable[str]) -> List[ParsedIngredient]:
    return [decode_ingredient(r) for r in raw_items]
