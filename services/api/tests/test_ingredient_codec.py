import pytest

from batchmaker.parsing.ingredient_codec import (
    UNKNOWN_INGREDIENT,
    decode_ingredient,
    decode_ingredients,
    encode_ingredient,
    encode_ingredients,
)
from batchmaker.parsing.schemas import ParsedIngredient


def test_encode_full_ingredient():
    assert encode_ingredient(ParsedIngredient(name="flour", amount="2", unit="cups")) == "flour: 2 cups"


def test_encode_without_unit():
    assert encode_ingredient(ParsedIngredient(name="eggs", amount="3", unit="")) == "eggs: 3"


def test_encode_name_only_keeps_colon():
    assert encode_ingredient(ParsedIngredient(name="salt")) == "salt:"


def test_encode_unit_without_amount_keeps_empty_slot():
    assert encode_ingredient(ParsedIngredient(name="salt", amount="", unit="unknown")) == "salt:  unknown"


def test_decode_empty_amount_with_unit():
    ing = decode_ingredient("salt:  unknown")
    assert ing == ParsedIngredient(name="salt", amount="", unit="unknown")


def test_decode_multi_word_unit():
    ing = decode_ingredient("olive oil: 2 fl oz")
    assert ing.name == "olive oil"
    assert ing.amount == "2"
    assert ing.unit == "fl oz"


def test_decode_no_colon_is_name_only():
    ing = decode_ingredient("  butter ")
    assert ing == ParsedIngredient(name="butter", amount="", unit="")


def test_decode_splits_on_first_colon_only():
    ing = decode_ingredient("ratio: 1:2 parts")
    assert ing.name == "ratio"
    assert ing.amount == "1:2"
    assert ing.unit == "parts"


def test_decode_empty_name_falls_back():
    assert decode_ingredient(": 2 cups").name == UNKNOWN_INGREDIENT
    assert decode_ingredient("   ").name == UNKNOWN_INGREDIENT


def test_decode_name_with_nothing_after_colon():
    ing = decode_ingredient("salt:")
    assert ing.amount == ""
    assert ing.unit == ""


@pytest.mark.parametrize("ingredient", [
    ParsedIngredient(name="flour", amount="500", unit="g"),
    ParsedIngredient(name="milk", amount="1/2", unit="cup"),
    ParsedIngredient(name="eggs", amount="3", unit=""),
    ParsedIngredient(name="salt", amount="", unit=""),
    ParsedIngredient(name="pepper", amount="", unit="pinch"),
    ParsedIngredient(name="cream", amount="", unit="fl oz"),
])
def test_round_trip_for_space_free_amounts(ingredient):
    assert decode_ingredient(encode_ingredient(ingredient)) == ingredient


def test_amount_with_space_is_lossy():
    # "1 1/2 cups" cannot be told apart from amount "1" + unit "1/2 cups"
    encoded = encode_ingredient(ParsedIngredient(name="sugar", amount="1 1/2", unit="cups"))
    decoded = decode_ingredient(encoded)
    assert decoded.amount == "1"
    assert decoded.unit == "1/2 cups"


def test_list_helpers():
    items = [
        ParsedIngredient(name="a", amount="1", unit="g"),
        ParsedIngredient(name="b"),
        ParsedIngredient(name="c", amount="", unit="to taste"),
    ]
    assert decode_ingredients(encode_ingredients(items)) == items
