"""Unit tests for the best-effort activity logger."""

import logging
import uuid

import pytest
from services.coins_service.models import ActivityType
from services.coins_service.services.activity_log import (
    ActivityLogger,
    RequestContext,
    list_activity,
)
from starlette.requests import Request


@pytest.mark.asyncio
@pytest.mark.unit
async def test_log_persists_entry(db_session, activity_logger):
    user_id = uuid.uuid4()

    ok = await activity_logger.log(
        user_id,
        ActivityType.COINS_ADDED,
        details={"amount": 5},
        context=RequestContext(ip="10.0.0.1", user_agent="pytest"),
    )

    assert ok is True
    entries = await list_activity(db_session, user_id)
    assert len(entries) == 1
    assert entries[0].activity_type == "coins_added"
    assert entries[0].details == {"amount": 5}
    assert entries[0].ip == "10.0.0.1"
    assert entries[0].user_agent == "pytest"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_log_failure_is_swallowed_and_reported(caplog):
    class _BrokenSession:
        async def __aenter__(self):
            return self

        async def __aexit__(self, *exc):
            return False

        def add(self, entry):
            pass

        async def commit(self):
            raise ConnectionError("activity store unreachable")

    logger = ActivityLogger(lambda: _BrokenSession())

    with caplog.at_level(logging.WARNING):
        ok = await logger.log(uuid.uuid4(), "coins_added")

    assert ok is False
    assert "Could not record activity coins_added" in caplog.text


@pytest.mark.asyncio
@pytest.mark.unit
async def test_list_activity_newest_first_with_limit(db_session, activity_logger):
    user_id = uuid.uuid4()
    for activity_type in ("first", "second", "third"):
        await activity_logger.log(user_id, activity_type)

    entries = await list_activity(db_session, user_id, limit=2)

    assert [e.activity_type for e in entries] == ["third", "second"]


@pytest.mark.unit
def test_request_context_prefers_forwarded_for():
    request = Request(
        {
            "type": "http",
            "method": "POST",
            "path": "/referrals/apply",
            "headers": [
                (b"x-forwarded-for", b"203.0.113.9, 10.0.0.2"),
                (b"user-agent", b"Mozilla/5.0"),
            ],
            "client": ("10.0.0.2", 5555),
        }
    )

    context = RequestContext.from_request(request)

    assert context == RequestContext(ip="203.0.113.9", user_agent="Mozilla/5.0")
