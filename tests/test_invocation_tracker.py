# tests/test_invocation_tracker.py - Tests for invocation tracker module
"""
Unit tests for the InvocationTracker class.
"""

import pytest
from datetime import datetime, timedelta
from src.collector.entry_reader import LogRecord
from src.collector.invocation_tracker import InvocationTracker, MethodInvocation
from src.collector.profiling_reader import ItemKind, ProfilingItem


BASE = datetime(2019, 5, 27, 9, 0, 0)

ROOT = "model.impl.sync.SynchronizationServiceImpl->notifyChange"
SEARCH = "repo.sql.SqlRepositoryServiceImpl->searchObjects"


def make_record(ms, thread, message):
    return LogRecord(BASE + timedelta(milliseconds=ms), thread, "DEBUG", "PROFILING", message, message)


def make_item(kind, seq, method, etime=None, thread="pool-1-thread-1", ms=0, batch=1, detail=None):
    """Create a test profiling item"""
    return ProfilingItem(
        kind=kind,
        sequence_number=seq,
        method=method,
        etime=etime,
        first_record=make_record(ms, thread, f"{kind} {seq}"),
        progress=0,
        batch=batch,
        new_batch=False,
        second_record=make_record(ms + 1, thread, detail) if detail is not None else None,
    )


@pytest.fixture
def tracker():
    return InvocationTracker({
        'root_methods': [ROOT],
        'long_threshold_us': 50_000,
        'long_include': ['.*->searchObjects'],
    })


class TestInvocationTracker:
    """Test cases for InvocationTracker"""

    def test_tracker_initialization(self):
        """Test tracker initialization with defaults"""
        tracker = InvocationTracker()

        assert tracker.root_methods == set()
        assert tracker.long_threshold_us == 50_000
        assert tracker.per_batch is False
        assert tracker.per_thread_type is True
        assert tracker.histogram.bucket_size == 10_000

    def test_untracked_thread_ignored(self, tracker):
        """Test that items outside an enclosing invocation are ignored"""
        assert tracker.process_item(make_item(ItemKind.ENTRY, 1, SEARCH)) is None
        assert tracker.process_item(make_item(ItemKind.EXIT, 1, SEARCH, etime=90_000)) is None

        assert tracker.histogram.variables == {}
        assert tracker.invocation_count == 0
        assert tracker.long_invocations == []

    def test_enclosing_invocation(self, tracker):
        """Test a root invocation with a nested call"""
        tracker.process_item(make_item(ItemKind.ENTRY, 1, ROOT, ms=0))
        tracker.process_item(make_item(ItemKind.ENTRY, 2, SEARCH, ms=10))
        assert tracker.process_item(make_item(ItemKind.EXIT, 2, SEARCH, etime=20_000, ms=30)) is None

        closed = tracker.process_item(make_item(ItemKind.EXIT, 1, ROOT, etime=100_000, ms=100))

        assert closed.sequence_number == 1
        assert closed.thread_name == "pool-1-thread-1"
        assert closed.timestamp == BASE + timedelta(milliseconds=100)
        assert closed.summary.event_types() == [ROOT, SEARCH]
        assert closed.summary.get(SEARCH).max_time == 20_000
        assert tracker.enclosing == {}
        assert tracker.closed_count == 1
        assert tracker.invocation_count == 2

    def test_threads_tracked_separately(self, tracker):
        """Test that each thread has its own enclosing invocation"""
        tracker.process_item(make_item(ItemKind.ENTRY, 1, ROOT, thread="pool-1-thread-1"))
        tracker.process_item(make_item(ItemKind.ENTRY, 2, ROOT, thread="pool-1-thread-2"))
        tracker.process_item(make_item(ItemKind.EXIT, 2, ROOT, etime=5, thread="pool-1-thread-2"))

        assert list(tracker.enclosing) == ["pool-1-thread-1"]

    def test_long_invocation(self, tracker):
        """Test that a slow included call is retained with its details"""
        tracker.process_item(make_item(ItemKind.ENTRY, 1, ROOT))
        tracker.process_item(make_item(ItemKind.ENTRY, 2, SEARCH, detail="###### args: (ShadowType, q)"))
        tracker.process_item(make_item(ItemKind.EXIT, 2, SEARCH, etime=50_000, ms=60,
                                       detail="###### retval: [2 objects]"))

        assert len(tracker.long_invocations) == 1
        invocation = tracker.long_invocations[0]
        assert isinstance(invocation, MethodInvocation)
        assert invocation.execution_time == 50_000
        assert invocation.arguments == "(ShadowType, q)"
        assert invocation.return_value == "[2 objects]"
        assert invocation.timestamp == BASE + timedelta(milliseconds=60)
        assert invocation.category_name is None
        assert invocation.category_parameters == {}

    def test_long_invocation_filters(self, tracker):
        """Test threshold and include/exclude filters"""
        assert not tracker.is_long(make_item(ItemKind.EXIT, 1, SEARCH, etime=49_999))
        assert tracker.is_long(make_item(ItemKind.EXIT, 1, SEARCH, etime=50_000))
        assert not tracker.is_long(make_item(ItemKind.EXIT, 1, ROOT, etime=90_000))

        excluding = InvocationTracker({'long_exclude': ['.*->notifyChange']})
        assert excluding.is_long(make_item(ItemKind.EXIT, 1, SEARCH, etime=90_000))
        assert not excluding.is_long(make_item(ItemKind.EXIT, 1, ROOT, etime=90_000))

    def test_missing_details(self, tracker):
        """Test arguments and return value without second records"""
        tracker.process_item(make_item(ItemKind.ENTRY, 1, ROOT))
        tracker.process_item(make_item(ItemKind.ENTRY, 2, SEARCH))
        tracker.process_item(make_item(ItemKind.EXIT, 2, SEARCH, etime=60_000))

        invocation = tracker.long_invocations[0]
        assert invocation.arguments == ""
        assert invocation.return_value == ""

    def test_orphan_exit(self, tracker):
        """Test that an exit without entry still counts in the aggregations"""
        tracker.process_item(make_item(ItemKind.ENTRY, 1, ROOT))
        tracker.process_item(make_item(ItemKind.EXIT, 7, SEARCH, etime=80_000))

        assert tracker.orphan_exits == 1
        assert tracker.invocation_count == 0
        assert tracker.long_invocations == []
        assert tracker.histogram.get_counts(SEARCH)[8] == 1
        assert tracker.aggregator.open_tags["pool-1-thread-1"].get(SEARCH).count == 1

    def test_histogram_variables(self):
        """Test variable names for batch and thread type options"""
        item = make_item(ItemKind.EXIT, 1, "a->b", etime=1, batch=3, thread="midPointScheduler_Worker-6")

        assert InvocationTracker({'per_thread_type': False}).histogram_variables(item) == ["a->b"]
        assert InvocationTracker().histogram_variables(item) == ["a->b:COORDINATOR", "a->b"]
        assert InvocationTracker({'per_batch': True, 'per_thread_type': False}).histogram_variables(item) == [
            "a->b:003", "a->b"]
        assert InvocationTracker({'per_batch': True}).histogram_variables(item) == [
            "a->b:003:COORDINATOR", "a->b:003", "a->b"]

    def test_thread_types(self):
        """Test the thread role derived from the name"""
        tracker = InvocationTracker()

        worker = make_item(ItemKind.EXIT, 1, "a->b", etime=1, thread="pool-3-thread-9")
        other = make_item(ItemKind.EXIT, 1, "a->b", etime=1, thread="http-nio-8080-exec-1")

        assert tracker.histogram_variables(worker)[0] == "a->b:WORKER"
        assert tracker.histogram_variables(other)[0] == "a->b:OTHER"

    def test_histogram_exclude(self):
        """Test that excluded methods are left out of the histogram"""
        tracker = InvocationTracker({'root_methods': [ROOT], 'histogram_exclude': ['.*RepositoryCache->.*']})
        tracker.process_item(make_item(ItemKind.ENTRY, 1, ROOT))
        tracker.process_item(make_item(ItemKind.EXIT, 9, "repo.cache.RepositoryCache->getObject", etime=10))

        assert tracker.histogram.variables == {}
        assert tracker.method_times["repo.cache.RepositoryCache->getObject"].count == 1

    def test_new_batch_resets_state(self, tracker):
        """Test that the batch listener forgets in-flight invocations"""
        tracker.process_item(make_item(ItemKind.ENTRY, 1, ROOT))
        tracker.process_item(make_item(ItemKind.ENTRY, 2, SEARCH))
        tracker.process_item(make_item(ItemKind.EXIT, 3, SEARCH, etime=1))

        tracker.on_new_batch(2, make_record(120_000, "pool-1-thread-1", "#### Entry: 5 ...x"))

        assert tracker.enclosing == {}
        assert tracker.pending_entries == {}
        assert tracker.aggregator.open_tags == {}

    def test_stats_and_top_methods(self, tracker):
        """Test statistics and method ranking"""
        tracker.process_item(make_item(ItemKind.ENTRY, 1, ROOT))
        tracker.process_item(make_item(ItemKind.ENTRY, 2, SEARCH))
        tracker.process_item(make_item(ItemKind.EXIT, 2, SEARCH, etime=70_000))
        tracker.process_item(make_item(ItemKind.EXIT, 1, ROOT, etime=90_000))

        stats = tracker.get_stats()
        top = tracker.get_top_methods(1)

        assert stats['closed_enclosing_invocations'] == 1
        assert stats['invocations'] == 2
        assert stats['long_invocations'] == 1
        assert stats['orphan_exits'] == 0
        assert top[0][0] == ROOT
        assert top[0][1].total_time == 90_000
