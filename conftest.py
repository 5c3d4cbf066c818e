# conftest.py - pytest root configuration
"""
Keeps the project root importable so tests can use ``src.*`` imports.
"""
