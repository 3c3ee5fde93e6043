# tests/property/settings.py
"""Standardized Hypothesis settings profiles for property tests.

Usage:
    from tests.property.settings import STANDARD_SETTINGS

    @given(text=st.text())
    @STANDARD_SETTINGS
    def test_something(text):
        ...

Tiers:
- REDACTION_SETTINGS: 500 examples - credential leakage checks
- STATE_MACHINE_SETTINGS: 200 examples - Stateful cache tests
- STANDARD_SETTINGS: 100 examples - Regular property tests
- SLOW_SETTINGS: 50 examples - File system tests (.env probing)
"""

from hypothesis import settings

# A leaked credential is the one failure that cannot be rolled back
REDACTION_SETTINGS = settings(max_examples=500)

STATE_MACHINE_SETTINGS = settings(max_examples=200, stateful_step_count=40)

STANDARD_SETTINGS = settings(max_examples=100)

# Real files under tmp_path
SLOW_SETTINGS = settings(max_examples=50)
