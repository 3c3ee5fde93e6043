# tests/monitoring/__init__.py
"""Tests for the Monitor."""
