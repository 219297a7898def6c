import json
import re
import threading
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from batchmaker.models import BatchTemplate, Workflow
from batchmaker.parsing.normalizer import normalize_recipe
from batchmaker.parsing.schemas import ParserErrorCode, RawRecipe
from batchmaker.services import workflow_store
from batchmaker.services.workflow_store import (
    save_recipe_from_text,
    save_recipe_from_url,
    save_workflow,
    to_batch_template_insert,
    to_workflow_insert,
)

from conftest import recipe_payload


@pytest.fixture
def parsed():
    return normalize_recipe(RawRecipe.model_validate(recipe_payload()))


def test_workflow_insert_mapping(parsed):
    row = to_workflow_insert(parsed, "user-1", "loc-9")

    assert re.fullmatch(r"wf-\d+-[a-z0-9]{7}", row["id"])
    assert row["user_id"] == "user-1"
    assert row["location_id"] == "loc-9"
    assert row["name"] == "Buttered Toast"
    assert row["total_time_minutes"] == 4
    assert row["steps"][0]["title"] == "Prepare Ingredients"
    assert row["ingredients"][0] == {"name": "bread", "amount": "2", "unit": "slices"}


def test_batch_template_mapping(parsed):
    row = to_batch_template_insert(parsed, "user-1", "wf-1-abcdefg")
    assert row == {
        "workflow_id": "wf-1-abcdefg",
        "user_id": "user-1",
        "name": "Buttered Toast",
        "ingredients": [i.model_dump() for i in parsed.ingredients],
        "servings": "1",
        "total_estimated_minutes": 4,
    }


def test_save_workflow_persists_both_rows(db_session, parsed):
    result = save_workflow(db_session, parsed, "user-1", source_url="https://example.com/toast")

    assert result.success is True
    assert result.message == 'Imported "Buttered Toast"'

    workflow = db_session.get(Workflow, result.workflow_id)
    assert workflow.name == "Buttered Toast"
    assert workflow.source_url == "https://example.com/toast"
    assert len(workflow.steps) == 3

    template = db_session.query(BatchTemplate).filter(BatchTemplate.workflow_id == result.workflow_id).one()
    assert template.user_id == "user-1"


def test_save_workflow_database_error(parsed):
    db = MagicMock()
    db.commit.side_effect = OperationalError("INSERT", {}, Exception("disk full"))

    result = save_workflow(db, parsed, "user-1")

    assert result.success is False
    assert result.error == ParserErrorCode.DATABASE_ERROR
    assert result.message.startswith("Failed to save recipe:")
    db.rollback.assert_called_once()


@pytest.mark.asyncio
async def test_save_from_text(make_service, session, db_session):
    result = await save_recipe_from_text(make_service(), session, db_session, "Toast", location_id="loc-1")

    assert result.success is True
    assert db_session.get(Workflow, result.workflow_id).location_id == "loc-1"


@pytest.mark.asyncio
async def test_save_from_url_records_source(make_service, session, db_session):
    result = await save_recipe_from_url(make_service(), session, db_session, "https://example.com/toast")

    assert result.success is True
    assert db_session.get(Workflow, result.workflow_id).source_url == "https://example.com/toast"


@pytest.mark.asyncio
async def test_parse_failure_is_not_saved(make_service, session, db_session):
    sentinel = json.dumps({"error": "not_a_recipe", "message": "Nope."})
    result = await save_recipe_from_text(make_service(replies=[sentinel]), session, db_session, "hello")

    assert result.success is False
    assert result.error == ParserErrorCode.NOT_A_RECIPE
    assert result.message == "Nope."
    assert db_session.query(Workflow).count() == 0


@pytest.mark.asyncio
async def test_import_saves_off_the_event_loop(make_service, session, db_session, monkeypatch):
    loop_thread = threading.get_ident()
    threads = []

    def recording_save(*args, **kwargs):
        threads.append(threading.get_ident())
        return save_workflow(*args, **kwargs)

    monkeypatch.setattr(workflow_store, "save_workflow", recording_save)
    from_text = await save_recipe_from_text(make_service(), session, db_session, "Toast")
    from_url = await save_recipe_from_url(make_service(), session, db_session, "https://example.com/toast")

    assert from_text.success is True
    assert from_url.success is True
    assert len(threads) == 2
    assert loop_thread not in threads
