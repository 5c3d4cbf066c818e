# src/analyzer/__init__.py - Analysis module
"""
Analyzer module for processing profiling items and producing reports.

This module provides:
- histogram.py: Bucketed timing histogram
- template.py: Placeholder template compiler
- categorizer.py: Slow invocation categorization
- profiling_analyzer.py: Analysis run over a log directory
- report_generator.py: Report generation
- throughput_extractor.py: Per-minute counts of a single log file
"""
