# tests/contracts/__init__.py
"""Tests for the shared contracts package."""
