from enum import Enum
from typing import Any, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

PREPARE_INGREDIENTS_TITLE = "Prepare Ingredients"
PREPARE_INGREDIENTS_DESCRIPTION = "Gather and measure all ingredients before starting."


class ParserErrorCode(str, Enum):
    NO_INTERNET = "NO_INTERNET"
    RATE_LIMITED = "RATE_LIMITED"
    API_FAILURE = "API_FAILURE"
    PARSE_FAILURE = "PARSE_FAILURE"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_A_RECIPE = "NOT_A_RECIPE"
    DATABASE_ERROR = "DATABASE_ERROR"
    UNKNOWN = "UNKNOWN"


class ParsedIngredient(BaseModel):
    name: str
    amount: str = ""
    unit: str = ""


class ParsedStep(BaseModel):
    order: int = Field(ge=0)
    title: str
    description: str = ""
    duration_minutes: Optional[float] = 0
    temperature: Optional[float] = None
    temperature_unit: Optional[Literal["C", "F"]] = None
    notes: Optional[str] = None
    ingredients_for_step: List[str] = []


class ParsedRecipe(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipe_name: str = Field(alias="recipeName")
    description: str = ""
    ingredients: List[ParsedIngredient] = []
    steps: List[ParsedStep] = []
    total_estimated_minutes: float = Field(0, alias="totalEstimatedMinutes", ge=0)
    servings: Optional[str] = None


class ParserError(BaseModel):
    code: ParserErrorCode
    message: str
    retryable: bool


class ParserResult(BaseModel):
    """Either ``success=True`` with ``data`` or ``success=False`` with ``error``."""
    success: bool
    data: Optional[ParsedRecipe] = None
    error: Optional[ParserError] = None

    @classmethod
    def ok(cls, data: ParsedRecipe) -> "ParserResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: ParserErrorCode, message: str, retryable: bool) -> "ParserResult":
        return cls(success=False, error=ParserError(code=code, message=message, retryable=retryable))


class SaveRecipeResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    workflow_id: Optional[str] = Field(None, alias="workflowId")
    error: Optional[ParserErrorCode] = None
    message: Optional[str] = None


# --- Wire models (what the language model sends back) ---

class RawStep(BaseModel):
    """Loose step shape; the normalizer coerces every field."""
    model_config = ConfigDict(extra="allow")

    order: Any = None
    title: Any = None
    description: Any = None
    duration_minutes: Any = None
    temperature: Any = None
    temperature_unit: Any = None
    notes: Any = None
    ingredients_for_step: Any = None


class RawRecipe(BaseModel):
    """Top-level model output after sanitizing.

    ``recipeName`` is required; the URL prompt variant calls it ``name``.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True, str_strip_whitespace=True)

    recipe_name: str = Field(validation_alias=AliasChoices("recipeName", "name"), min_length=1)
    description: Any = None
    ingredients: Any = None
    steps: List[RawStep]
    total_estimated_minutes: Any = Field(None, alias="totalEstimatedMinutes")
    servings: Any = None
