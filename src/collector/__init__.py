# src/collector/__init__.py - Log collection module
"""
Collector module for reading profiling logs into structured items.

This module provides:
- line_reader.py: Multi-file line reader ordered by file start time
- entry_reader.py: Assembly of raw lines into log records
- profiling_reader.py: Entry/exit state machine with batch detection
- throughput.py: Per-minute progress counting
- aggregator.py: Event aggregation and statistics
- invocation_tracker.py: Method invocation pairing and tracking
"""
