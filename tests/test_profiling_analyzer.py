# tests/test_profiling_analyzer.py - End-to-end analysis tests
"""
Tests for the ProfilingLogAnalyzer run over a log directory.
"""

import csv
import pytest
from pathlib import Path
from unittest.mock import Mock
from src.analyzer.profiling_analyzer import ProfilingLogAnalyzer
from src.analyzer.template import TemplateError
from src.utils.config import Config


ROOT = "model.impl.sync.SynchronizationServiceImpl->notifyChange"
SEARCH = "repo.sql.SqlRepositoryServiceImpl->searchObjects"

SERVER_LOG = [
    f"2019-05-27 09:00:00,000 [pool-1-thread-1] DEBUG (PROFILING): #### Entry: 1 ...{ROOT}",
    "2019-05-27 09:00:00,001 [pool-1-thread-1] DEBUG (PROFILING): ###### args: (change)",
    f"2019-05-27 09:00:00,010 [pool-1-thread-1] DEBUG (PROFILING): #### Entry: 2 ...{SEARCH}",
    "2019-05-27 09:00:00,011 [pool-1-thread-1] DEBUG (PROFILING): ###### args: (ShadowType, Q{x}, null paging)",
    f"2019-05-27 09:00:00,080 [pool-1-thread-1] DEBUG (PROFILING): ##### Exit: 2 ...{SEARCH} etime: 70.5 ms",
    "2019-05-27 09:00:00,081 [pool-1-thread-1] DEBUG (PROFILING): ###### retval: [1 object]",
    f"2019-05-27 09:00:00,100 [pool-1-thread-1] DEBUG (PROFILING): ##### Exit: 1 ...{ROOT} etime: 100 ms",
    "2019-05-27 09:00:00,101 [pool-1-thread-1] DEBUG (PROFILING): ###### retval: null",
    ("2019-05-27 09:00:00,200 [midPointScheduler_Worker-1] INFO (TaskLogger): ...... "
     "(this one: 100 ms, avg: 100 ms) (total progress: 1, wall clock avg: 200 ms)"),
    "java.lang.Exception: continuation",
]


def read_rows(path):
    with open(path, newline='', encoding='utf-8') as f:
        return list(csv.reader(f, delimiter=';'))


@pytest.fixture
def log_dir(tmp_path):
    directory = tmp_path / "logs"
    directory.mkdir()
    (directory / "server.log").write_text("\n".join(SERVER_LOG) + "\n", encoding="utf-8")
    return directory


@pytest.fixture
def config():
    cfg = Config()
    cfg.set('invocations.root_methods', [ROOT])
    cfg.set('invocations.selected_methods', [SEARCH])
    cfg.set('invocations.long_include', ['.*->searchObjects'])
    cfg.set('categories', [
        {'name': 'search-shadow', 'method': SEARCH, 'arguments': '(ShadowType, ##{query}##, ##{paging}##)'},
        {'name': 'other'},
    ])
    cfg.set('subcategories', [{'name': 'no-paging', 'parameter': 'paging', 'value': 'null paging'}])
    return cfg


class TestProfilingLogAnalyzer:
    """Test cases for ProfilingLogAnalyzer"""

    def test_summary(self, log_dir, config, tmp_path):
        """Test run statistics"""
        summary = ProfilingLogAnalyzer(config, log_dir, tmp_path / "reports").run()

        assert summary['total_lines'] == 10
        assert summary['log_records'] == 9
        assert summary['continuation_lines'] == 1
        assert summary['batches'] == 1
        assert summary['profiling_items'] == 4
        assert summary['closed_enclosing_invocations'] == 1
        assert summary['invocations'] == 2
        assert summary['long_invocations'] == 1
        assert summary['progress_records'] == 1
        assert summary['last_progress'] == 1
        assert summary['absolute_maximum_us'] == 100_000
        assert summary['category_counts'] == {'search-shadow.no-paging': 1}
        assert summary['top_methods'][0]['method'] == ROOT

    def test_reports(self, log_dir, config, tmp_path):
        """Test report files of a run"""
        output = tmp_path / "reports"
        ProfilingLogAnalyzer(config, log_dir, output).run()

        all_text = (output / "invocations-all.txt").read_text(encoding="utf-8")
        assert all_text.startswith(
            "Method calls for entry #1 [pool-1-thread-1] at 2019-05-27 09:00:00,100 (progress: 0):")

        assert read_rows(output / "invocations-selected.csv") == [
            ["Timestamp", "Second", "Thread", "Progress", "searchObjects"],
            ["2019-05-27 09:00:00,100", "0", "pool-1-thread-1", "0", "70500"],
        ]
        assert read_rows(output / "per-minute.csv") == [["Minute", "Objects"], ["0", "1"]]

        histogram = read_rows(output / "methods-performance-histogram-10000-thread.csv")
        assert histogram[0] == ["Bucket", "From", "To", "Millis",
                                ROOT, f"{ROOT}:WORKER", SEARCH, f"{SEARCH}:WORKER"]
        assert len(histogram) == 12
        assert histogram[8] == ["7", "70000", "79999", "80.000000", "0", "0", "1", "1"]
        assert histogram[-1] == ["10", "100000", "100000", "100.001000", "1", "1", "0", "0"]

        long_rows = read_rows(output / "invocations-long-50.csv")
        assert long_rows == [[
            "2019-05-27 09:00:00,080", "pool-1-thread-1", SEARCH, "70500", "search-shadow.no-paging",
            "{query=Q{x}, paging=null paging}", "(ShadowType, Q{x}, null paging)", "[1 object]",
        ]]
        assert read_rows(output / "slow-query-category-counts-50.csv") == [
            ["Category", "Count"], ["search-shadow.no-paging", "1"]]

    def test_default_output_dir(self, log_dir, config):
        """Test that reports go next to the log directory by default"""
        analyzer = ProfilingLogAnalyzer(config, log_dir)
        analyzer.run()

        assert analyzer.output_dir == log_dir.parent
        assert (log_dir.parent / "per-minute.csv").exists()

    def test_item_callbacks(self, log_dir, config, tmp_path):
        """Test that registered callbacks see every profiling item"""
        callback = Mock()
        analyzer = ProfilingLogAnalyzer(config, log_dir, tmp_path / "reports")
        analyzer.register_callback(callback)

        analyzer.run()

        assert callback.call_count == 4

    def test_batches_across_files(self, tmp_path, config):
        """Test that files are read in start order and idle gaps split batches"""
        log_dir = tmp_path / "logs"
        log_dir.mkdir()
        # Later file name, earlier content
        (log_dir / "b.log").write_text("\n".join(SERVER_LOG) + "\n", encoding="utf-8")
        (log_dir / "a.log").write_text("\n".join(
            line.replace("2019-05-27 09:00:", "2019-05-27 09:05:") for line in SERVER_LOG
        ) + "\n", encoding="utf-8")

        analyzer = ProfilingLogAnalyzer(config, log_dir, tmp_path / "reports")
        summary = analyzer.run()

        assert [Path(p).name for p in summary["files"]] == ["b.log", "a.log"]
        assert summary['batches'] == 2
        assert summary['closed_enclosing_invocations'] == 2
        assert analyzer.throughput.get_counts_per_minute() == [1, 0, 0, 0, 0, 1]

    def test_malformed_category_fails_fast(self, log_dir, config):
        """Test that a malformed template is reported before reading logs"""
        config.set('categories', [{'name': 'broken', 'arguments': '(##{paging)'}])

        with pytest.raises(TemplateError):
            ProfilingLogAnalyzer(config, log_dir)

    def test_missing_log_directory(self, tmp_path, config):
        """Test that a missing directory aborts the run"""
        analyzer = ProfilingLogAnalyzer(config, tmp_path / "missing", tmp_path / "reports")

        with pytest.raises(FileNotFoundError):
            analyzer.run()
