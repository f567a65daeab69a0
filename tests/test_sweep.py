"""
Tests for the profile refresh sweep and the default refresher.
"""

import pytest
from conftest import seed

from reconciler.exceptions import NotFoundError, RefreshError, TransientStoreError
from reconciler.profiles import MemberProfileRefresher
from reconciler.storage.gc import DEFAULT_REFERENCE_MAP, sweep_refresh


class FakeClock:
    """Clock that advances a fixed step on every reading."""

    def __init__(self, step_ms: float):
        self.now = 0.0
        self.step = step_ms / 1000

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value


def seed_members(store, count: int) -> list[str]:
    ids = [f"m{i:03d}" for i in range(count)]
    seed(store, "members", *[{"_id": member_id} for member_id in ids])
    return ids


def run_to_completion(store, refresh, **kwargs) -> tuple[list, object]:
    """Chain invocations from an empty cursor until has_more is False."""
    results = []
    cursor = ""
    totals = {"processed_total": 0, "refreshed_total": 0, "failed_total": 0}
    for _ in range(1000):
        result = sweep_refresh(store, refresh, cursor=cursor, **totals, **kwargs)
        results.append(result)
        if not result.has_more:
            return results, result
        assert result.cursor > cursor
        cursor = result.cursor
        totals = {
            "processed_total": result.processed,
            "refreshed_total": result.refreshed,
            "failed_total": result.failed,
        }
    raise AssertionError("sweep did not terminate")


class TestSweepRefresh:
    """Tests for sweep_refresh."""

    @pytest.mark.parametrize("batch_size", [1, 3, 7, 50])
    @pytest.mark.parametrize("budget_ms,step_ms", [(20_000, 1), (5, 2), (0, 1)])
    def test_visits_every_member_exactly_once(self, store, batch_size, budget_ms, step_ms):
        """Test coverage for many batch sizes and time budgets."""
        ids = seed_members(store, 17)
        visited = []

        def refresh(member_id):
            visited.append(member_id)
            return True

        _, final = run_to_completion(
            store,
            refresh,
            batch_size=batch_size,
            max_duration_ms=budget_ms,
            clock=FakeClock(step_ms),
        )

        assert visited == ids
        assert final.processed == 17
        assert final.refreshed == 17
        assert final.remaining == 0

    def test_stops_when_budget_spent(self, store):
        """Test that at least one member is processed, then the budget applies."""
        seed_members(store, 5)

        result = sweep_refresh(
            store,
            lambda member_id: False,
            batch_size=5,
            max_duration_ms=0,
            clock=FakeClock(1),
        )

        assert result.processed == 1
        assert result.cursor == "m000"
        assert result.has_more
        assert result.remaining == 4

    def test_last_batch_reports_no_more(self, store):
        """Test has_more on an exactly consumed collection."""
        seed_members(store, 3)

        result = sweep_refresh(store, lambda member_id: True, batch_size=3)

        assert result.cursor == "m002"
        assert not result.has_more
        assert result.remaining == 0

    def test_failures_counted_and_skipped(self, store):
        """Test that a failed member is reported and the sweep moves on."""
        seed_members(store, 3)

        def refresh(member_id):
            if member_id == "m001":
                raise RefreshError("bad profile", member_id=member_id)
            return True

        result = sweep_refresh(store, refresh, batch_size=10)

        assert result.processed == 3
        assert result.refreshed == 2
        assert result.failed == 1
        assert result.errors[0]["memberId"] == "m001"
        assert not result.has_more

    def test_unexpected_errors_counted_per_member(self, store):
        """Test that any refresher exception fails only that member."""
        seed_members(store, 4)

        def refresh(member_id):
            if member_id == "m001":
                raise RuntimeError("profile template missing")
            return True

        result = sweep_refresh(store, refresh, batch_size=3)

        assert result.processed == 3
        assert result.refreshed == 2
        assert result.failed == 1
        assert result.errors == [{"memberId": "m001", "message": "profile template missing"}]
        assert result.cursor == "m002"
        assert result.has_more

    def test_deleted_member_is_not_a_failure(self, store):
        """Test that members vanishing mid-sweep count as processed only."""
        seed_members(store, 2)

        def refresh(member_id):
            raise NotFoundError("gone", collection="members", document_id=member_id)

        result = sweep_refresh(store, refresh, batch_size=10)

        assert result.processed == 2
        assert result.failed == 0

    def test_running_totals_carried(self, store):
        """Test that totals passed in are added to."""
        seed_members(store, 2)

        result = sweep_refresh(
            store,
            lambda member_id: True,
            processed_total=10,
            refreshed_total=7,
            failed_total=1,
        )

        assert (result.processed, result.refreshed, result.failed) == (12, 9, 1)

    def test_store_failure_keeps_cursor(self, store, monkeypatch):
        """Test that a failed fetch reports and leaves the cursor in place."""
        def broken(*args, **kwargs):
            raise TransientStoreError("unavailable", collection="members")

        monkeypatch.setattr(store, "query", broken)

        result = sweep_refresh(store, lambda member_id: True, cursor="m005")

        assert result.cursor == "m005"
        assert result.has_more
        assert result.errors
        assert result.remaining is None

    def test_empty_collection(self, store):
        """Test that an empty members collection finishes immediately."""
        result = sweep_refresh(store, lambda member_id: True)

        assert result.to_dict() == {
            "cursor": "",
            "has_more": False,
            "processed": 0,
            "refreshed": 0,
            "failed": 0,
            "errors": [],
            "remaining": 0,
        }


class TestMemberProfileRefresher:
    """Tests for the default per-member refresher."""

    def test_writes_stats_only_when_changed(self, store):
        """Test that stats are recomputed and rewritten only on change."""
        seed(store, "members", {"_id": "A"})
        seed(store, "reservations", {"_id": "r1", "memberId": "A"}, {"_id": "r2", "memberId": "A"})
        seed(store, "pvpLeaderboard", {"_id": "s1", "entries": [{"memberId": "A"}]})
        refresher = MemberProfileRefresher(store, DEFAULT_REFERENCE_MAP)

        assert refresher("A") is True
        stats = store.get_by_id("members", "A")["stats"]
        assert stats["reservations"] == 2
        assert stats["leaderboardEntries"] == 1
        assert stats["walletTransactions"] == 0

        assert refresher("A") is False

        seed(store, "reservations", {"_id": "r3", "memberId": "A"})
        assert refresher("A") is True
        assert store.get_by_id("members", "A")["stats"]["reservations"] == 3

    def test_missing_member_raises_not_found(self, store):
        """Test that refreshing a deleted member raises NotFoundError."""
        with pytest.raises(NotFoundError):
            MemberProfileRefresher(store, DEFAULT_REFERENCE_MAP)("gone")

    def test_store_failure_raises_refresh_error(self, store, monkeypatch):
        """Test that count failures surface as RefreshError for the member."""
        seed(store, "members", {"_id": "A"})

        def broken(*args, **kwargs):
            raise TransientStoreError("timeout")

        monkeypatch.setattr(store, "count", broken)

        with pytest.raises(RefreshError) as exc_info:
            MemberProfileRefresher(store, DEFAULT_REFERENCE_MAP)("A")
        assert exc_info.value.member_id == "A"

    def test_engine_sweep_uses_refresher(self, engine, store):
        """Test the engine facade end to end."""
        seed_members(store, 4)

        result = engine.sweep_refresh(batch_size=10)

        assert result.processed == 4
        assert result.refreshed == 4
        assert "stats" in store.get_by_id("members", "m003")
