from .schemas import (
    ParsedIngredient,
    ParsedStep,
    ParsedRecipe,
    ParserError,
    ParserErrorCode,
    ParserResult,
    SaveRecipeResult,
    RawRecipe,
)
from .ingredient_codec import encode_ingredient, decode_ingredient, encode_ingredients, decode_ingredients
from .sanitizer import sanitize_and_parse, strip_code_fences
from .normalizer import normalize_recipe, numeric_amount

__all__ = [
    "ParsedIngredient", "ParsedStep", "ParsedRecipe", "ParserError", "ParserErrorCode",
    "ParserResult", "SaveRecipeResult", "RawRecipe",
    "encode_ingredient", "decode_ingredient", "encode_ingredients", "decode_ingredients",
    "sanitize_and_parse", "strip_code_fences", "normalize_recipe", "numeric_amount",
]
