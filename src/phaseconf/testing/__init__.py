# src/phaseconf/testing/__init__.py
"""Test doubles for phaseconf."""

from phaseconf.testing.fake_provider import FakeProvider, FakeSession

__all__ = ["FakeProvider", "FakeSession"]
