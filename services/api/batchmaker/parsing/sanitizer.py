"""Turn raw model output into a validated ``RawRecipe``.

The model is told to return bare JSON, but it sometimes wraps the object in
a fenced code block or adds a sentence around it. This module strips that
wrapping, parses the JSON, detects the not-a-recipe sentinel, and validates
the top-level shape.
"""
import json
import re
from typing import Any, Dict, List

from pydantic import ValidationError

from .errors import NotARecipeError, ResponseParseError
from .schemas import RawRecipe

NOT_A_RECIPE_SENTINEL = "not_a_recipe"
DEFAULT_NOT_A_RECIPE_MESSAGE = "The text does not appear to be a recipe."

_LEADING_FENCE = re.compile(r"^```[\w-]*[ \t]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```\s*$")
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")


def strip_code_fences(raw_text: str) -> str:
    """Remove a leading ```/```json fence and a trailing ``` fence."""
    cleaned = (raw_text or "").strip()
    cleaned = _LEADING_FENCE.sub("", cleaned, count=1)
    cleaned = _TRAILING_FENCE.sub("", cleaned, count=1)
    return cleaned.strip()


def _load_json(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        # Conversational wrapping: try the outermost {...} span before giving up
        match = _OBJECT_SPAN.search(text)
        if match and match.group(0) != text:
            try:
                return json.loads(match.group(0))
            except json.JSONDecodeError:
                pass
        raise ResponseParseError(
            f"Response is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno}).",
            errors=[{"loc": "$", "msg": e.msg}],
        )


def _format_validation_errors(exc: ValidationError) -> List[Dict[str, str]]:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "$"
        errors.append({"loc": loc, "msg": err.get("msg", "invalid value")})
    return errors


def is_not_a_recipe(payload: Dict[str, Any]) -> bool:
    marker = payload.get("error")
    return isinstance(marker, str) and marker.strip().lower() == NOT_A_RECIPE_SENTINEL


def sanitize_and_parse(raw_text: str) -> RawRecipe:
    """Parse model output into a ``RawRecipe``.

    Raises:
        NotARecipeError: the model returned its not-a-recipe sentinel
        ResponseParseError: empty output, invalid JSON, or wrong top-level shape
    """
    cleaned = strip_code_fences(raw_text)
    if not cleaned:
        raise ResponseParseError("Response was empty after removing formatting.")

    payload = _load_json(cleaned)

    if not isinstance(payload, dict):
        raise ResponseParseError(
            f"Expected a JSON object but got {type(payload).__name__}.",
            errors=[{"loc": "$", "msg": "expected object"}],
        )

    if is_not_a_recipe(payload):
        message = payload.get("message")
        if not isinstance(message, str) or not message.strip():
            message = DEFAULT_NOT_A_RECIPE_MESSAGE
        raise NotARecipeError(message.strip())

    try:
        return RawRecipe.model_validate(payload)
    except ValidationError as e:
        errors = _format_validation_errors(e)
        summary = "; ".join(f"{err['loc']}: {err['msg']}" for err in errors)
        raise ResponseParseError(
            f"Response is missing required fields or has the wrong shape ({summary}).",
            errors=errors,
        )
