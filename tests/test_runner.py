"""
Tests for the job runner and cleanup summary aggregation.
"""

import threading
import time

from reconciler.storage.gc import CleanupSummary, merge_summaries, run_with_concurrency


class TestRunWithConcurrency:
    """Tests for run_with_concurrency."""

    def test_results_in_input_order(self):
        """Test that results follow task order regardless of completion order."""
        delays = [0.05, 0.0, 0.02, 0.0, 0.01]

        def make(i, delay):
            def task():
                time.sleep(delay)
                return i
            return task

        results = run_with_concurrency([make(i, d) for i, d in enumerate(delays)], concurrency=3)

        assert [r.index for r in results] == [0, 1, 2, 3, 4]
        assert [r.value for r in results] == [0, 1, 2, 3, 4]
        assert all(r.ok for r in results)

    def test_failure_is_isolated(self):
        """Test that one failing task does not affect the others."""
        def boom():
            raise RuntimeError("store down")

        results = run_with_concurrency([lambda: 1, boom, lambda: 3], concurrency=2)

        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, RuntimeError)
        assert results[2].value == 3

    def test_concurrency_bound(self):
        """Test that no more than K tasks run at once."""
        lock = threading.Lock()
        running = 0
        peak = 0

        def task():
            nonlocal running, peak
            with lock:
                running += 1
                peak = max(peak, running)
            time.sleep(0.02)
            with lock:
                running -= 1

        run_with_concurrency([task] * 10, concurrency=3)
        assert 1 <= peak <= 3

    def test_empty_task_list(self):
        """Test that no tasks means no results."""
        assert run_with_concurrency([], concurrency=3) == []


class TestCleanupSummary:
    """Tests for CleanupSummary and merge_summaries."""

    def test_record_and_totals(self):
        """Test counting into removed and preview."""
        summary = CleanupSummary()
        summary.record("reservations", 2)
        summary.record("reservations", 1)
        summary.record("walletTransactions", 4, preview=True)

        assert summary.removed == {"reservations": 3}
        assert summary.preview == {"walletTransactions": 4}
        assert summary.total_removed == 3
        assert summary.total_preview == 4

    def test_merge_sums_per_key(self):
        """Test that merge sums counts and concatenates errors."""
        a = CleanupSummary(removed={"x": 1})
        a.add_error("x", "d1", "boom")
        b = CleanupSummary(removed={"x": 2, "y": 5})

        merged = a.merge(b)

        assert merged.removed == {"x": 3, "y": 5}
        assert len(merged.errors) == 1
        assert a.removed == {"x": 1}

    def test_merge_is_associative_and_commutative(self):
        """Test that completion order does not change the result."""
        a = CleanupSummary(removed={"x": 1})
        b = CleanupSummary(removed={"y": 2}, preview={"z": 1})
        c = CleanupSummary(removed={"x": 4})

        left = a.merge(b).merge(c)
        right = a.merge(b.merge(c))
        swapped = c.merge(a).merge(b)

        assert left.removed == right.removed == swapped.removed == {"x": 5, "y": 2}
        assert left.preview == swapped.preview == {"z": 1}

    def test_merge_summaries_empty(self):
        """Test that folding nothing yields an empty summary."""
        assert merge_summaries([]).to_dict() == {"removed": {}, "preview": {}, "errors": []}

    def test_to_dict(self):
        """Test the serialized form."""
        summary = CleanupSummary()
        summary.add_error("reservations", "r1", "timeout")
        assert summary.to_dict()["errors"] == [{"collection": "reservations", "id": "r1", "message": "timeout"}]
