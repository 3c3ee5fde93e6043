# tests/property/conftest.py
"""Shared Hypothesis strategies for property-based tests.

Usage:
    from tests.property.conftest import credentials, origin_subsets

    @given(credential=credentials)
    def test_never_leaks(credential: str) -> None:
        ...
"""

from __future__ import annotations

import string

from hypothesis import strategies as st

from phaseconf.contracts import ErrorCode, TokenOrigin

# Service-token-shaped credentials: no whitespace, long enough to scrub
credentials = st.text(
    alphabet=string.ascii_letters + string.digits + ":_-.",
    min_size=10,
    max_size=64,
)

# Free text a provider might put in an error message
messages = st.text(max_size=200)

names = st.text(alphabet=string.ascii_lowercase + string.digits + "-", min_size=1, max_size=12)

origins = st.sampled_from(list(TokenOrigin))

error_codes = st.sampled_from(list(ErrorCode))

# Which of the five origins hold a credential in a generated workspace
origin_subsets = st.sets(origins)
