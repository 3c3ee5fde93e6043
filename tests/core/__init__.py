# tests/core/__init__.py
"""Tests for settings, logging, redaction and retry."""
