"""Tests for log storage, search, listing, and deletion."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_folder, make_log, make_org
from logtree_cloud.errors import AuthError, ValidationError
from logtree_cloud.logs import (
    OVERSIZED_CONTEXT_NOTE,
    ContextFilter,
    bound_additional_context,
    count_logs_in_window,
    delete_log,
    get_logs,
    get_logs_by_reference_id,
    get_oldest_log_date,
    parse_context_query,
    parse_context_value,
    search_logs,
    truncate_content,
)
from logtree_cloud.models.folder import Folder
from logtree_cloud.models.organization import Organization


def test_long_content_is_truncated_with_marker():
    stored = truncate_content("x" * 1600)
    assert len(stored) == 1503
    assert stored.endswith("...")


def test_short_content_is_unchanged():
    assert truncate_content("short") == "short"


def test_oversized_context_is_replaced():
    context = {"blob": "y" * 3000}
    assert bound_additional_context(context) == OVERSIZED_CONTEXT_NOTE


def test_small_context_is_kept():
    context = {"user": "alice", "attempts": 3}
    assert bound_additional_context(context) == context


@pytest.mark.parametrize(
    "raw, expected",
    [
        ('"hello"', "hello"),
        ("'123'", "123"),
        ("true", True),
        ("FALSE", False),
        ("42", 42),
        ("4.5", 4.5),
        ("hello", None),
    ],
)
def test_parse_context_value(raw, expected):
    assert parse_context_value(raw) == expected


def test_parse_context_query():
    assert parse_context_query("context.plan=\"pro\"") == ContextFilter(key="plan", value="pro")


@pytest.mark.parametrize(
    "query",
    ["context.plan", "context.=1", "context.plan=pro", "plan=1", 'context.a"b=1', "context.a\\b=1"],
)
def test_invalid_context_queries(query):
    assert parse_context_query(query) is None


@pytest.mark.asyncio
async def test_create_log_stores_truncated_content_and_updates_folder(
    db_session: AsyncSession,
    test_org: Organization,
):
    now = datetime.now(timezone.utc)
    folder = await make_folder(db_session, test_org, "/imports")

    log = await make_log(db_session, folder, now, content="z" * 1600, reference_id="")

    assert len(log.content) == 1503
    assert log.reference_id is None
    refreshed = await db_session.get(Folder, folder.id)
    assert refreshed.date_of_most_recent_log == now


@pytest.mark.asyncio
async def test_substring_search_is_case_insensitive(
    db_session: AsyncSession,
    test_org: Organization,
):
    now = datetime.now(timezone.utc)
    folder = await make_folder(db_session, test_org, "/signups")
    await make_log(db_session, folder, now - timedelta(minutes=2), content="New user Alice")
    await make_log(db_session, folder, now - timedelta(minutes=1), content="new USER bob")
    await make_log(db_session, folder, now, content="payment failed")

    logs = await search_logs(db_session, test_org.id, "new user")

    assert [log.content for log in logs] == ["new USER bob", "New user Alice"]


@pytest.mark.asyncio
async def test_substring_search_treats_wildcards_literally(
    db_session: AsyncSession,
    test_org: Organization,
):
    now = datetime.now(timezone.utc)
    folder = await make_folder(db_session, test_org, "/signups")
    await make_log(db_session, folder, now, content="100% done")
    await make_log(db_session, folder, now, content="1000 done")

    logs = await search_logs(db_session, test_org.id, "100%")

    assert [log.content for log in logs] == ["100% done"]


@pytest.mark.asyncio
async def test_reference_id_search(db_session: AsyncSession, test_org: Organization):
    now = datetime.now(timezone.utc)
    folder = await make_folder(db_session, test_org, "/orders")
    await make_log(db_session, folder, now, content="created", reference_id="order_1")
    await make_log(db_session, folder, now, content="order_1 mentioned", reference_id="order_2")

    logs = await search_logs(db_session, test_org.id, "id:order_1")

    assert [log.content for log in logs] == ["created"]


@pytest.mark.asyncio
async def test_context_search_matches_typed_values(
    db_session: AsyncSession,
    test_org: Organization,
):
    now = datetime.now(timezone.utc)
    folder = await make_folder(db_session, test_org, "/logins")
    await make_log(db_session, folder, now, content="a", additional_context={"plan": "pro", "attempts": 3})
    await make_log(db_session, folder, now, content="b", additional_context={"plan": "free", "attempts": 1})
    await make_log(db_session, folder, now, content="c", additional_context={"is_admin": True})

    by_string = await search_logs(db_session, test_org.id, 'context.plan="pro"')
    by_number = await search_logs(db_session, test_org.id, "context.attempts=1")
    by_bool = await search_logs(db_session, test_org.id, "context.is_admin=true")

    assert [log.content for log in by_string] == ["a"]
    assert [log.content for log in by_number] == ["b"]
    assert [log.content for log in by_bool] == ["c"]


@pytest.mark.asyncio
async def test_search_is_scoped_to_organization_and_folder(
    db_session: AsyncSession,
    test_org: Organization,
):
    now = datetime.now(timezone.utc)
    other_org = await make_org(db_session, slug="other-org")
    mine = await make_folder(db_session, test_org, "/a")
    also_mine = await make_folder(db_session, test_org, "/b")
    theirs = await make_folder(db_session, other_org, "/a")
    await make_log(db_session, mine, now, content="match one")
    await make_log(db_session, also_mine, now, content="match two")
    await make_log(db_session, theirs, now, content="match three")

    everywhere = await search_logs(db_session, test_org.id, "match")
    in_folder = await search_logs(db_session, test_org.id, "match", folder_id=mine.id)

    assert sorted(log.content for log in everywhere) == ["match one", "match two"]
    assert [log.content for log in in_folder] == ["match one"]


@pytest.mark.asyncio
async def test_get_logs_requires_exactly_one_scope(db_session: AsyncSession, test_org: Organization):
    folder = await make_folder(db_session, test_org, "/a")

    with pytest.raises(ValidationError):
        await get_logs(db_session)
    with pytest.raises(ValidationError):
        await get_logs(db_session, folder_id=folder.id, favorite_folder_ids=[folder.id])


@pytest.mark.asyncio
async def test_get_logs_pages_newest_first_with_date_bounds(
    db_session: AsyncSession,
    test_org: Organization,
):
    now = datetime.now(timezone.utc)
    folder = await make_folder(db_session, test_org, "/a")
    for minutes_ago in range(5):
        await make_log(db_session, folder, now - timedelta(minutes=minutes_ago), content=str(minutes_ago))

    page = await get_logs(db_session, folder_id=folder.id, start=1, limit=2)
    older = await get_logs(db_session, folder_id=folder.id, logs_no_newer_than=now - timedelta(minutes=2))
    newer = await get_logs(db_session, folder_id=folder.id, logs_no_older_than=now - timedelta(minutes=2))

    assert [log.content for log in page] == ["1", "2"]
    assert [log.content for log in older] == ["3", "4"]
    assert [log.content for log in newer] == ["0", "1"]


@pytest.mark.asyncio
async def test_get_logs_in_favorites_mode(db_session: AsyncSession, test_org: Organization):
    now = datetime.now(timezone.utc)
    a = await make_folder(db_session, test_org, "/a")
    b = await make_folder(db_session, test_org, "/b")
    await make_log(db_session, a, now, content="in a")
    await make_log(db_session, b, now, content="in b")

    logs = await get_logs(db_session, favorite_folder_ids=[b.id])

    assert [log.content for log in logs] == ["in b"]


@pytest.mark.asyncio
async def test_get_logs_by_reference_id(db_session: AsyncSession, test_org: Organization):
    now = datetime.now(timezone.utc)
    folder = await make_folder(db_session, test_org, "/orders")
    await make_log(db_session, folder, now, reference_id="order_9")
    await make_log(db_session, folder, now, reference_id="order_8")

    logs = await get_logs_by_reference_id(db_session, test_org.id, "order_9")

    assert len(logs) == 1
    assert logs[0].reference_id == "order_9"


@pytest.mark.asyncio
async def test_delete_own_log(db_session: AsyncSession, test_org: Organization):
    folder = await make_folder(db_session, test_org, "/a")
    log = await make_log(db_session, folder, datetime.now(timezone.utc))

    await delete_log(db_session, log.id, test_org.id)

    assert await get_logs(db_session, folder_id=folder.id) == []


@pytest.mark.asyncio
async def test_cannot_delete_another_orgs_log(
    db_session: AsyncSession,
    test_org: Organization,
):
    other_org = await make_org(db_session, slug="other-org")
    folder = await make_folder(db_session, other_org, "/a")
    log = await make_log(db_session, folder, datetime.now(timezone.utc))

    with pytest.raises(AuthError):
        await delete_log(db_session, log.id, test_org.id)


@pytest.mark.asyncio
async def test_window_counts(db_session: AsyncSession, test_org: Organization):
    now = datetime.now(timezone.utc)
    folder = await make_folder(db_session, test_org, "/a")
    await make_log(db_session, folder, now - timedelta(minutes=10))
    await make_log(db_session, folder, now - timedelta(minutes=5))
    await make_log(db_session, folder, now)

    half_open = await count_logs_in_window(db_session, folder.id, now - timedelta(minutes=10), now)
    closed = await count_logs_in_window(
        db_session, folder.id, now - timedelta(minutes=10), now, inclusive_ceiling=True
    )

    assert half_open == 2
    assert closed == 3
    assert await get_oldest_log_date(db_session, folder.id) == now - timedelta(minutes=10)


@pytest.mark.asyncio
async def test_context_key_with_quote_falls_back_to_substring_search(
    db_session: AsyncSession,
    test_org: Organization,
):
    now = datetime.now(timezone.utc)
    folder = await make_folder(db_session, test_org, "/odd")
    await make_log(db_session, folder, now, content="x", additional_context={'a"b': 1})
    await make_log(db_session, folder, now, content='saw context.a"b=1 in the payload')

    logs = await search_logs(db_session, test_org.id, 'context.a"b=1')

    assert [log.content for log in logs] == ['saw context.a"b=1 in the payload']
