# src/__init__.py - Profiling Log Analyzer
"""
Profiling Log Analyzer: reconstructs method invocations from profiling logs.
"""

__version__ = '0.1.0'
