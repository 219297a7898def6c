from typing import Any, Dict, List, Optional

from .schemas import ParserErrorCode


class RecipeParserError(Exception):
    """Base exception for failures inside the parse pipeline.

    Every subclass carries the taxonomy code it maps to and whether a
    re-attempt may succeed.
    """
    code: ParserErrorCode = ParserErrorCode.UNKNOWN
    retryable: bool = False

    def __init__(self, message: str, *, code: Optional[ParserErrorCode] = None, retryable: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if retryable is not None:
            self.retryable = retryable


class InputValidationError(RecipeParserError):
    """Empty or malformed caller input. Rejected before any network call."""
    code = ParserErrorCode.PARSE_FAILURE
    retryable = False


class UnauthorizedError(RecipeParserError):
    """No valid session for the caller."""
    code = ParserErrorCode.UNAUTHORIZED
    retryable = False


class NoInternetError(RecipeParserError):
    code = ParserErrorCode.NO_INTERNET
    retryable = True


class RateLimitedError(RecipeParserError):
    code = ParserErrorCode.RATE_LIMITED
    retryable = False


class ModelInvocationError(RecipeParserError):
    """The language model call failed, timed out or returned nothing."""
    code = ParserErrorCode.API_FAILURE
    retryable = True


class PageFetchError(RecipeParserError):
    """The recipe page could not be retrieved."""
    code = ParserErrorCode.API_FAILURE
    retryable = True


class ResponseParseError(RecipeParserError):
    """Model output was not valid JSON or did not match the recipe schema.

    ``errors`` holds one ``{"loc": ..., "msg": ...}`` entry per problem found.
    """
    code = ParserErrorCode.PARSE_FAILURE
    retryable = True

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class NotARecipeError(RecipeParserError):
    """The model returned its not-a-recipe sentinel."""
    code = ParserErrorCode.NOT_A_RECIPE
    retryable = False
