"""Ranking service: snapshot recomputation and reads."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from stockpick.db.models import PREDICTION_FAILED, PREDICTION_SUCCESS
from stockpick.exceptions import ConcurrencyConflictError, InvalidPeriodError
from stockpick.rankings.lock import lock_key

from fakes import make_user, settled_prediction

pytestmark = pytest.mark.asyncio

S, F = PREDICTION_SUCCESS, PREDICTION_FAILED
W10_DAY = datetime(2024, 3, 5, 2, tzinfo=timezone.utc)
W11_DAY = datetime(2024, 3, 12, 2, tzinfo=timezone.utc)


def _add(store, prediction_id, user_id, status, day, hour=0, actual_return=None):
    ts = day + timedelta(hours=hour)
    if actual_return is None:
        actual_return = 3.0 if status == S else -3.0
    store.add_prediction(settled_prediction(
        prediction_id, user_id, status, ts + timedelta(minutes=30), actual_return=actual_return, created_at=ts,
    ))


@pytest.fixture
def contest(store):
    """Users 1-3 active, user 4 inactive.

    W10: user 3 wins three in a row. W11: user 1 wins twice, user 2 once,
    user 3 fails once.
    """
    for user_id in (1, 2, 3):
        store.add_user(make_user(user_id))
    store.add_user(make_user(4, status="inactive"))

    _add(store, 1, 3, S, W10_DAY, 0)
    _add(store, 2, 3, S, W10_DAY, 1)
    _add(store, 3, 3, S, W10_DAY, 2)
    _add(store, 4, 1, S, W11_DAY, 0)
    _add(store, 5, 1, S, W11_DAY, 1)
    _add(store, 6, 2, S, W11_DAY, 2)
    _add(store, 7, 3, F, W11_DAY, 3)
    _add(store, 8, 4, S, W11_DAY, 4)
    return store


def _summary(snapshots):
    return [(s.user_id, s.rank, s.score, s.previous_rank, s.badge) for s in snapshots]


class TestCalculateRankings:
    """Test snapshot recomputation."""

    async def test_current_week(self, contest, ranking_service):
        snapshots = await ranking_service.calculate_rankings("weekly")
        assert {s.period for s in snapshots} == {"2024-W11"}
        assert _summary(snapshots) == [
            (1, 1, 20, None, "weekly_champion"),
            (2, 2, 10, None, "runner_up"),
            (3, 3, -5, None, "third_place"),
        ]

    async def test_inactive_users_are_excluded(self, contest, ranking_service):
        snapshots = await ranking_service.calculate_rankings("weekly", "2024-W11")
        assert 4 not in {s.user_id for s in snapshots}
        assert [s.rank for s in snapshots] == [1, 2, 3]

    async def test_only_window_predictions_count(self, contest, ranking_service):
        snapshots = await ranking_service.calculate_rankings("weekly", "2024-W10")
        assert _summary(snapshots)[0] == (3, 1, 50, None, "weekly_champion")
        assert all(s.total_predictions == 0 for s in snapshots if s.user_id != 3)

    async def test_previous_rank_from_preceding_period(self, contest, ranking_service):
        await ranking_service.calculate_rankings("weekly", "2024-W10")
        snapshots = await ranking_service.calculate_rankings("weekly", "2024-W11")
        previous = {s.user_id: s.previous_rank for s in snapshots}
        assert previous == {1: 2, 2: 3, 3: 1}
        assert next(s for s in snapshots if s.user_id == 3).rank_change == -2

    async def test_recompute_is_idempotent(self, contest, ranking_service, store):
        await ranking_service.calculate_rankings("weekly", "2024-W10")
        first = _summary(await ranking_service.calculate_rankings("weekly", "2024-W11"))
        second = _summary(await ranking_service.calculate_rankings("weekly", "2024-W11"))
        assert first == second
        assert len([s for s in store.snapshots if s.period == "2024-W11"]) == 3

    async def test_monthly_and_total(self, contest, ranking_service, store):
        store.users[3].total_score = 500
        monthly = await ranking_service.calculate_rankings("monthly")
        assert monthly[0].period == "2024-03"
        # user 3: 10 + 10 + 30 - 5 across both weeks
        assert _summary(monthly)[0] == (3, 1, 45, None, "monthly_champion")

        total = await ranking_service.calculate_rankings("total")
        assert total[0].period == "total"
        assert total[0].period_start is None
        assert _summary(total)[0] == (3, 1, 500, None, "overall_champion")

    async def test_no_users(self, ranking_service, store):
        assert await ranking_service.calculate_rankings("weekly") == []
        assert store.snapshots == []

    async def test_overlapping_run_is_rejected(self, contest, ranking_service, fake_redis, store):
        await fake_redis.set(lock_key("weekly", "2024-W11"), "someone-else", nx=True)
        with pytest.raises(ConcurrencyConflictError):
            await ranking_service.calculate_rankings("weekly", "2024-W11")
        assert store.snapshots == []

    async def test_claim_released_after_run(self, contest, ranking_service, fake_redis):
        await ranking_service.calculate_rankings("weekly", "2024-W11")
        assert fake_redis.data == {}

    async def test_invalid_period(self, contest, ranking_service):
        with pytest.raises(InvalidPeriodError):
            await ranking_service.calculate_rankings("weekly", "2024-03")


class TestRankingReads:
    """Test leaderboard reads."""

    async def test_list_pages_by_rank(self, contest, ranking_service):
        await ranking_service.calculate_rankings("weekly")
        page = await ranking_service.get_ranking_list("weekly", limit=2, offset=0)
        assert page.period == "2024-W11"
        assert page.total == 3
        assert [s.user_id for s in page.items] == [1, 2]

        page = await ranking_service.get_ranking_list("weekly", "2024-W11", limit=2, offset=2)
        assert [s.user_id for s in page.items] == [3]

    async def test_list_hides_users_deactivated_after_calculation(self, contest, ranking_service, store):
        await ranking_service.calculate_rankings("weekly")
        store.users[2].status = "banned"
        page = await ranking_service.get_ranking_list("weekly")
        assert page.total == 2
        assert [s.user_id for s in page.items] == [1, 3]

    async def test_user_ranking(self, contest, ranking_service):
        await ranking_service.calculate_rankings("weekly")
        snapshot = await ranking_service.get_user_ranking(2, "weekly")
        assert snapshot.rank == 2
        assert await ranking_service.get_user_ranking(2, "weekly", "2024-W09") is None

    async def test_history_newest_first(self, contest, ranking_service):
        await ranking_service.calculate_rankings("weekly", "2024-W10")
        await ranking_service.calculate_rankings("weekly", "2024-W11")
        history = await ranking_service.get_ranking_history("weekly")
        assert [h["period"] for h in history] == ["2024-W11", "2024-W10"]
        assert history[0]["participants"] == 3
        assert history[0]["top_score"] == 20
        assert history[0]["avg_score"] == 8.33

    async def test_trend_oldest_first(self, contest, ranking_service):
        await ranking_service.calculate_rankings("weekly", "2024-W10")
        await ranking_service.calculate_rankings("weekly", "2024-W11")
        trend = await ranking_service.get_user_ranking_trend(3, "weekly")
        assert [(t["period"], t["rank"], t["rank_change"]) for t in trend] == [
            ("2024-W10", 1, 0),
            ("2024-W11", 3, -2),
        ]

    async def test_stats(self, contest, ranking_service):
        await ranking_service.calculate_rankings("weekly")
        stats = await ranking_service.get_ranking_stats()
        assert stats["weekly"]["period"] == "2024-W11"
        assert stats["weekly"]["participants"] == 3
        assert stats["weekly"]["champion"]["user_id"] == 1
        assert stats["monthly"] == {"period": "2024-03", "participants": 0, "champion": None}
