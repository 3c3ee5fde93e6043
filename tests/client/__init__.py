# tests/client/__init__.py
"""Tests for the secrets provider client."""
