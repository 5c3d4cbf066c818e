# tests/test_helpers.py - Tests for utility helpers
"""
Unit tests for helper functions and logging setup.
"""

import logging
import pytest
from datetime import datetime
from src.utils.helpers import (
    ThreadType, compile_patterns, format_duration, format_timestamp,
    matches_any, millis_between, parse_timestamp, short_method_name
)
from src.utils.logger import ColoredFormatter, setup_logging


class TestHelpers:
    """Test cases for helper functions"""

    def test_timestamps(self):
        """Test parsing and formatting log timestamps"""
        timestamp = parse_timestamp("2019-05-27 09:42:11,230")

        assert timestamp == datetime(2019, 5, 27, 9, 42, 11, 230000)
        assert format_timestamp(timestamp) == "2019-05-27 09:42:11,230"

    def test_millis_between(self):
        """Test whole milliseconds between timestamps"""
        earlier = datetime(2019, 5, 27, 9, 0, 0)
        later = datetime(2019, 5, 27, 9, 1, 0, 999)

        assert millis_between(earlier, later) == 60_000
        assert millis_between(later, earlier) == -60_001

    def test_thread_type(self):
        """Test thread roles"""
        assert ThreadType.determine("midPointScheduler_Worker-6") == ThreadType.COORDINATOR
        assert ThreadType.determine("pool-1-thread-1") == ThreadType.WORKER
        assert ThreadType.determine("main") == ThreadType.OTHER
        assert str(ThreadType.WORKER) == "WORKER"

    def test_patterns_full_match(self):
        """Test that patterns must match the whole text"""
        patterns = compile_patterns([".*Cache->.*"])

        assert matches_any("repo.RepositoryCache->getObject", patterns)
        assert not matches_any("repo.Repository->getObject", patterns)
        assert not matches_any("anything", compile_patterns(None))

    def test_format_duration(self):
        """Test human-readable durations"""
        assert format_duration(500) == "500us"
        assert format_duration(7708) == "7.7ms"
        assert format_duration(2_500_000) == "2.5s"

    def test_short_method_name(self):
        """Test method names after the arrow"""
        assert short_method_name("repo.sql.SqlRepositoryServiceImpl->searchObjects") == "searchObjects"
        assert short_method_name("plain") == "plain"


class TestLogging:
    """Test cases for logging setup"""

    def test_setup_logging(self, tmp_path):
        """Test console and file handlers"""
        log_file = tmp_path / "analyzer.log"
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level

        try:
            setup_logging('DEBUG', str(log_file))
            logging.getLogger("test").debug("hello")

            assert root.level == logging.DEBUG
            assert len(root.handlers) == 2
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = saved_handlers
            root.setLevel(saved_level)

        assert "hello" in log_file.read_text()

    def test_colored_formatter_keeps_record(self):
        """Test that coloring does not alter the original record"""
        record = logging.makeLogRecord({'levelname': 'WARNING', 'msg': 'careful', 'name': 'x'})

        text = ColoredFormatter('%(levelname)s %(message)s').format(record)

        assert 'careful' in text
        assert record.levelname == 'WARNING'
