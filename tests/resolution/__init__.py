# tests/resolution/__init__.py
"""Tests for credential discovery."""
