# tests/property/__init__.py
"""Property-based tests for phaseconf.

Run with a heavier profile:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""
