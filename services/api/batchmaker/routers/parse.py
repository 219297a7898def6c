"""Recipe parse and import endpoints.

Every parser outcome comes back as a ``ParserResult`` / ``SaveRecipeResult``
body; the HTTP status only mirrors the error code.
"""
import asyncio
import logging
from typing import Any, Awaitable, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..core.auth import RequestSession
from ..deps import get_db, get_parser_service, get_session
from ..parsing.schemas import ParserErrorCode, ParserResult, SaveRecipeResult
from ..services.recipe_parser import RecipeParserService
from ..services.workflow_store import save_recipe_from_text, save_recipe_from_url

router = APIRouter()
logger = logging.getLogger("batchmaker.api")

DISCONNECT_POLL_SECONDS = 0.5

STATUS_BY_CODE = {
    ParserErrorCode.PARSE_FAILURE: 422,
    ParserErrorCode.NOT_A_RECIPE: 422,
    ParserErrorCode.RATE_LIMITED: 429,
    ParserErrorCode.UNAUTHORIZED: 401,
    ParserErrorCode.API_FAILURE: 502,
    ParserErrorCode.NO_INTERNET: 503,
    ParserErrorCode.DATABASE_ERROR: 500,
    ParserErrorCode.UNKNOWN: 500,
}


class ParseTextRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipe_text: str = Field("", alias="recipeText")


class ParseUrlRequest(BaseModel):
    url: str = ""


class ImportRecipeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recipe_text: Optional[str] = Field(None, alias="recipeText")
    url: Optional[str] = None
    location_id: Optional[str] = Field(None, alias="locationId")


def _status_for(code: Optional[ParserErrorCode]) -> int:
    return STATUS_BY_CODE.get(code, 500)


def _respond(result: BaseModel, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=result.model_dump(mode="json", by_alias=True))


async def _run_until_disconnect(request: Request, work: Awaitable[Any]) -> Optional[Any]:
    """Await ``work`` but cancel it if the client goes away.

    Returns None when the request was abandoned.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.info(f"Client disconnected from {request.url.path}; cancelling parse")
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
                return None
    finally:
        if not task.done():
            task.cancel()


def _abandoned() -> JSONResponse:
    result = ParserResult.fail(ParserErrorCode.UNKNOWN, "Request cancelled by client.", False)
    return _respond(result, 499)


@router.post("/recipes/parse")
async def parse_recipe_text(
    body: ParseTextRequest,
    request: Request,
    session: RequestSession = Depends(get_session),
    service: RecipeParserService = Depends(get_parser_service),
):
    """Parse pasted recipe text into a workflow."""
    result = await _run_until_disconnect(request, service.parse_from_text(session, body.recipe_text))
    if result is None:
        return _abandoned()
    return _respond(result, 200 if result.success else _status_for(result.error.code))


@router.post("/recipes/parse-url")
async def parse_recipe_url(
    body: ParseUrlRequest,
    request: Request,
    session: RequestSession = Depends(get_session),
    service: RecipeParserService = Depends(get_parser_service),
):
    """Fetch a recipe page and parse it into a workflow."""
    result = await _run_until_disconnect(request, service.parse_from_url(session, body.url))
    if result is None:
        return _abandoned()
    return _respond(result, 200 if result.success else _status_for(result.error.code))


@router.post("/recipes/import")
async def import_recipe(
    body: ImportRecipeRequest,
    request: Request,
    session: RequestSession = Depends(get_session),
    service: RecipeParserService = Depends(get_parser_service),
    db: Session = Depends(get_db),
):
    """Parse text or a URL and save the result as a workflow."""
    has_text = bool(body.recipe_text and body.recipe_text.strip())
    has_url = bool(body.url and body.url.strip())
    if has_text == has_url:
        result = SaveRecipeResult(
            success=False,
            error=ParserErrorCode.PARSE_FAILURE,
            message="Provide exactly one of recipeText or url.",
        )
        return _respond(result, 422)

    if has_url:
        work = save_recipe_from_url(service, session, db, body.url, body.location_id)
    else:
        work = save_recipe_from_text(service, session, db, body.recipe_text, body.location_id)

    result = await _run_until_disconnect(request, work)
    if result is None:
        return _abandoned()
    return _respond(result, 201 if result.success else _status_for(result.error))
