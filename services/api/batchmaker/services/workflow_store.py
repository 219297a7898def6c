"""Persist parsed recipes as workflows.

Mirrors the import flow of the app: a workflow row first, then a batch
template pointing at it, committed together. The save is blocking, so the
async import helpers run it on the default executor.
"""
import asyncio
import functools
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.auth import RequestSession
from ..models import BatchTemplate, Workflow, generate_workflow_id
from ..parsing.schemas import ParsedRecipe, ParserErrorCode, SaveRecipeResult
from .recipe_parser import RecipeParserService

logger = logging.getLogger("batchmaker.store")


def to_workflow_insert(
    parsed: ParsedRecipe, user_id: str, location_id: Optional[str] = None
) -> Dict[str, Any]:
    return {
        "id": generate_workflow_id(),
        "user_id": user_id,
        "location_id": location_id,
        "name": parsed.recipe_name,
        "description": parsed.description or None,
        "servings": parsed.servings or None,
        "total_time_minutes": parsed.total_estimated_minutes,
        "ingredients": [i.model_dump() for i in parsed.ingredients],
        "steps": [s.model_dump() for s in parsed.steps],
    }


def to_batch_template_insert(parsed: ParsedRecipe, user_id: str, workflow_id: str) -> Dict[str, Any]:
    return {
        "workflow_id": workflow_id,
        "user_id": user_id,
        "name": parsed.recipe_name,
        "ingredients": [i.model_dump() for i in parsed.ingredients],
        "servings": parsed.servings or None,
        "total_estimated_minutes": parsed.total_estimated_minutes,
    }


def save_workflow(
    db: Session,
    parsed: ParsedRecipe,
    user_id: str,
    location_id: Optional[str] = None,
    source_url: Optional[str] = None,
) -> SaveRecipeResult:
    workflow = Workflow(**to_workflow_insert(parsed, user_id, location_id), source_url=source_url)

    try:
        db.add(workflow)
        db.flush()
        db.add(BatchTemplate(**to_batch_template_insert(parsed, user_id, workflow.id)))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to save workflow for user {user_id}: {e}")
        return SaveRecipeResult(
            success=False,
            error=ParserErrorCode.DATABASE_ERROR,
            message=f"Failed to save recipe: {getattr(e, 'orig', None) or e}",
        )

    logger.info(f"Saved workflow {workflow.id} ({parsed.recipe_name}) for user {user_id}")
    return SaveRecipeResult(
        success=True,
        workflow_id=workflow.id,
        message=f'Imported "{parsed.recipe_name}"',
    )


async def save_recipe_from_text(
    service: RecipeParserService,
    session: RequestSession,
    db: Session,
    recipe_text: str,
    location_id: Optional[str] = None,
) -> SaveRecipeResult:
    result = await service.parse_from_text(session, recipe_text)
    if not result.success:
        return SaveRecipeResult(success=False, error=result.error.code, message=result.error.message)

    user_id = await session.get_user_id()
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, save_workflow, db, result.data, user_id, location_id)


async def save_recipe_from_url(
    service: RecipeParserService,
    session: RequestSession,
    db: Session,
    url: str,
    location_id: Optional[str] = None,
) -> SaveRecipeResult:
    result = await service.parse_from_url(session, url)
    if not result.success:
        return SaveRecipeResult(success=False, error=result.error.code, message=result.error.message)

    user_id = await session.get_user_id()
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None, functools.partial(save_workflow, db, result.data, user_id, location_id, source_url=url.strip())
    )
