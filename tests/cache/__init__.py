# tests/cache/__init__.py
"""Tests for the result cache and sweeper."""
