"""Tests for log frequencies, percent change, insights, histograms, and the stats cache."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import make_folder, make_log
from logtree_cloud.errors import ValidationError
from logtree_cloud.folders import record_user_checking_folder
from logtree_cloud.logs import delete_log
from logtree_cloud.models.organization import Organization
from logtree_cloud.models.user import User
from logtree_cloud.stats import (
    LogPoint,
    StatsCache,
    TimeInterval,
    get_histograms_for_folder,
    get_insights,
    get_log_frequencies_by_interval,
    get_logs_for_window,
    get_percent_change_in_frequency_of_most_recent_logs,
    percent_change_from_frequencies,
)
from logtree_cloud.stats.engine import bucket_timestamps

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def _hours(*values: float) -> list[timedelta]:
    return [timedelta(hours=value) for value in values]


def test_percent_change_against_single_older_interval():
    assert percent_change_from_frequencies([3, 2]) == 50


def test_percent_change_rounds_to_two_decimals():
    assert percent_change_from_frequencies([3, 4, 3, 4, 3, 4, 3]) == -14.29


def test_percent_change_needs_two_points():
    assert percent_change_from_frequencies([]) == 0
    assert percent_change_from_frequencies([7]) == 0


def test_percent_change_with_zero_older_average():
    assert percent_change_from_frequencies([5, 0, 0]) == 0


@pytest.mark.asyncio
async def test_frequencies_count_newest_interval_first(db_session: AsyncSession, test_org: Organization):
    folder = await make_folder(db_session, test_org, "/signups")
    for age in _hours(0.1, 0.5, 0.9, 1.2, 1.8, 5):
        await make_log(db_session, folder, NOW - age)

    frequencies = await get_log_frequencies_by_interval(
        db_session, folder.id, TimeInterval.HOUR, 3, NOW
    )

    assert frequencies == [3, 2, 0]


@pytest.mark.asyncio
async def test_frequencies_stop_before_the_oldest_log(db_session: AsyncSession, test_org: Organization):
    folder = await make_folder(db_session, test_org, "/signups")
    for age in _hours(0.1, 0.5):
        await make_log(db_session, folder, NOW - age)

    clamped = await get_log_frequencies_by_interval(
        db_session, folder.id, TimeInterval.HOUR, 3, NOW
    )
    unclamped = await get_log_frequencies_by_interval(
        db_session, folder.id, TimeInterval.HOUR, 3, NOW, ignore_oldest_log=True
    )

    assert clamped == [2]
    assert unclamped == [2, 0, 0]


@pytest.mark.asyncio
async def test_frequencies_of_empty_folder(db_session: AsyncSession, test_org: Organization):
    folder = await make_folder(db_session, test_org, "/empty")

    assert await get_log_frequencies_by_interval(db_session, folder.id, TimeInterval.DAY, 3, NOW) == []
    assert await get_log_frequencies_by_interval(
        db_session, folder.id, TimeInterval.DAY, 3, NOW, ignore_oldest_log=True
    ) == [0, 0, 0]


@pytest.mark.asyncio
async def test_percent_change_of_most_recent_logs(
    db_session: AsyncSession,
    test_org: Organization,
):
    folder = await make_folder(db_session, test_org, "/signups")
    for age in _hours(0.1, 0.5, 0.9, 1.2, 1.8):
        await make_log(db_session, folder, NOW - age)

    change = await get_percent_change_in_frequency_of_most_recent_logs(
        db_session, folder.id, TimeInterval.HOUR, 2, NOW
    )

    assert change == 50


@pytest.mark.asyncio
async def test_insights_split_most_checked_from_other_folders(
    db_session: AsyncSession,
    test_org: Organization,
    test_user: User,
):
    growing = await make_folder(db_session, test_org, "/growing")
    shrinking = await make_folder(db_session, test_org, "/shrinking")
    steady = await make_folder(db_session, test_org, "/steady")
    brand_new = await make_folder(db_session, test_org, "/brand-new")
    for age in _hours(1, 2, 3, 10, 30, 40):
        await make_log(db_session, growing, NOW - age)
    for age in _hours(1, 30, 40):
        await make_log(db_session, shrinking, NOW - age)
    for age in _hours(1, 2, 30, 40):
        await make_log(db_session, steady, NOW - age)
    await make_log(db_session, brand_new, NOW - timedelta(hours=1))
    await record_user_checking_folder(db_session, test_user.id, shrinking.id, now=NOW)

    insights = await get_insights(db_session, test_org.id, test_user.id, "UTC", NOW)

    assert [i.full_path for i in insights.most_checked] == ["/shrinking"]
    assert insights.most_checked[0].percent_change == -50
    assert insights.most_checked[0].num_logs_today == 1
    assert [i.full_path for i in insights.other] == ["/growing"]
    assert insights.other[0].percent_change == 100
    assert insights.other[0].num_logs_today == 4


@pytest.mark.asyncio
async def test_insights_today_follows_the_users_timezone(
    db_session: AsyncSession,
    test_org: Organization,
    test_user: User,
):
    folder = await make_folder(db_session, test_org, "/growing")
    for age in _hours(1, 2, 3, 10, 30, 40):
        await make_log(db_session, folder, NOW - age)

    insights = await get_insights(db_session, test_org.id, test_user.id, "America/New_York", NOW)

    # 02:00 UTC is still yesterday in New York
    assert insights.other[0].num_logs_today == 3


@pytest.mark.asyncio
async def test_insights_reject_unknown_timezone(db_session: AsyncSession, test_org: Organization, test_user: User):
    with pytest.raises(ValidationError):
        await get_insights(db_session, test_org.id, test_user.id, "Mars/Olympus_Mons", NOW)


@pytest.mark.asyncio
async def test_insights_sort_other_folders_by_absolute_change(
    db_session: AsyncSession,
    test_org: Organization,
    test_user: User,
):
    small_rise = await make_folder(db_session, test_org, "/small-rise")
    big_drop = await make_folder(db_session, test_org, "/big-drop")
    for age in _hours(1, 2, 3, 30, 40):
        await make_log(db_session, small_rise, NOW - age)
    for age in _hours(1, 30, 35, 40, 45):
        await make_log(db_session, big_drop, NOW - age)

    insights = await get_insights(db_session, test_org.id, test_user.id, "UTC", NOW)

    assert insights.most_checked == []
    assert [(i.full_path, i.percent_change) for i in insights.other] == [
        ("/big-drop", -75),
        ("/small-rise", 50),
    ]


def test_bucket_timestamps():
    floor = NOW - timedelta(days=1)
    boxes = bucket_timestamps(
        [floor + timedelta(minutes=30), floor + timedelta(minutes=45), NOW - timedelta(minutes=1)],
        floor,
        NOW,
        24,
    )

    assert len(boxes) == 24
    assert boxes[0].count == 2
    assert boxes[23].count == 1
    assert sum(box.count for box in boxes) == 3
    assert boxes[1].floor_date == floor + timedelta(hours=1)


@pytest.mark.asyncio
async def test_histograms_empty_when_all_content_unique(
    db_session: AsyncSession,
    test_org: Organization,
):
    folder = await make_folder(db_session, test_org, "/events")
    for index in range(5):
        await make_log(db_session, folder, NOW - timedelta(hours=index + 1), content=f"event {index}")

    assert await get_histograms_for_folder(db_session, folder.id, now=NOW) == []


@pytest.mark.asyncio
async def test_histograms_group_by_content_ranked_by_count(
    db_session: AsyncSession,
    test_org: Organization,
):
    folder = await make_folder(db_session, test_org, "/events")
    for age, content in [(1, "a"), (2, "b"), (3, "a"), (4, "c"), (5, "a"), (6, "b")]:
        await make_log(db_session, folder, NOW - timedelta(hours=age) + timedelta(minutes=30), content=content)
    await make_log(db_session, folder, NOW - timedelta(days=2), content="a")

    histograms = await get_histograms_for_folder(db_session, folder.id, now=NOW)

    assert [(h.key, h.count) for h in histograms] == [("a", 3), ("b", 2), ("c", 1)]
    assert all(len(h.boxes) == 24 for h in histograms)
    assert [box.count for box in histograms[0].boxes][-5:] == [1, 0, 1, 0, 1]


@pytest.mark.asyncio
async def test_histograms_group_by_reference_id_with_one_box_per_day(
    db_session: AsyncSession,
    test_org: Organization,
):
    folder = await make_folder(db_session, test_org, "/orders")
    await make_log(db_session, folder, NOW - timedelta(days=1, hours=1), content="x", reference_id="o1")
    await make_log(db_session, folder, NOW - timedelta(hours=1), content="y", reference_id="o1")
    await make_log(db_session, folder, NOW - timedelta(hours=2), content="z")

    histograms = await get_histograms_for_folder(
        db_session, folder.id, group_by_reference_id=True, last_x_days=7, now=NOW
    )

    assert len(histograms) == 1
    assert histograms[0].key == "o1"
    assert [box.count for box in histograms[0].boxes] == [0, 0, 0, 0, 0, 1, 1]


@pytest.mark.asyncio
async def test_histograms_keep_only_top_twelve_groups(db_session: AsyncSession, test_org: Organization):
    folder = await make_folder(db_session, test_org, "/events")
    for index in range(15):
        for repeat in range(2):
            await make_log(
                db_session,
                folder,
                NOW - timedelta(minutes=index * 10 + repeat + 1),
                content=f"event {index}",
            )

    histograms = await get_histograms_for_folder(db_session, folder.id, now=NOW)

    assert len(histograms) == 12


@pytest.mark.asyncio
async def test_histograms_reject_non_positive_window(db_session: AsyncSession, test_org: Organization):
    folder = await make_folder(db_session, test_org, "/events")

    with pytest.raises(ValidationError):
        await get_histograms_for_folder(db_session, folder.id, last_x_days=0, now=NOW)


def test_cache_newest_ceiling_wins():
    cache = StatsCache()
    folder_id = "folder"
    newer = [LogPoint(created_at=NOW, content="new")]

    assert cache.put(folder_id, NOW - timedelta(days=7), NOW, newer)
    assert not cache.put(folder_id, NOW - timedelta(days=8), NOW - timedelta(hours=1), [])
    assert cache.get(folder_id).logs == newer


@pytest.mark.asyncio
async def test_cache_skips_short_windows(db_session: AsyncSession, test_org: Organization):
    folder = await make_folder(db_session, test_org, "/events")
    cache = StatsCache()

    await get_logs_for_window(db_session, folder.id, NOW - timedelta(days=1), NOW, cache)

    assert len(cache) == 0


@pytest.mark.asyncio
async def test_cache_hit_fetches_only_newer_logs_and_trims_old_ones(
    db_session: AsyncSession,
    test_org: Organization,
):
    folder = await make_folder(db_session, test_org, "/events")
    oldest = await make_log(db_session, folder, NOW - timedelta(days=6, hours=12), content="oldest")
    cached = await make_log(db_session, folder, NOW - timedelta(days=1), content="cached")
    cache = StatsCache()

    first = await get_logs_for_window(db_session, folder.id, NOW - timedelta(days=7), NOW, cache)
    assert [p.content for p in first] == ["oldest", "cached"]

    # Deleting a cached log is not seen until the entry is superseded.
    await delete_log(db_session, cached.id, test_org.id)
    await make_log(db_session, folder, NOW, content="at old ceiling")
    await make_log(db_session, folder, NOW + timedelta(hours=12), content="fresh")

    later = NOW + timedelta(days=1)
    second = await get_logs_for_window(db_session, folder.id, later - timedelta(days=7), later, cache)

    assert [p.content for p in second] == ["cached", "at old ceiling", "fresh"]
    assert oldest.content not in [p.content for p in second]
    assert cache.get(folder.id).ceiling == later


@pytest.mark.asyncio
async def test_histograms_use_the_cache_for_long_windows(
    db_session: AsyncSession,
    test_org: Organization,
):
    folder = await make_folder(db_session, test_org, "/events")
    for age in (1, 2):
        await make_log(db_session, folder, NOW - timedelta(days=age), content="same")
    cache = StatsCache()

    histograms = await get_histograms_for_folder(
        db_session, folder.id, last_x_days=7, now=NOW, cache=cache
    )

    assert histograms[0].count == 2
    assert len(cache) == 1
