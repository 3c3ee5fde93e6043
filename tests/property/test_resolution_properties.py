# tests/property/test_resolution_properties.py
"""Property-based tests for token resolution and error classification.

Resolution Properties:
- The highest-priority origin holding a credential always wins
- No credential anywhere always yields TokenNotFound with all five checks
- has_credential in the probe report matches exactly the populated origins

Classification Properties:
- classify_provider_error is total over arbitrary messages
- An existing ResolutionError keeps its code whatever its message says
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from hypothesis import given
from hypothesis import strategies as st

from phaseconf.client.classify import classify_provider_error
from phaseconf.contracts import ErrorCode, ResolutionError, SourceCheck, TokenNotFound, TokenOrigin, TokenSource
from phaseconf.resolution import SourceProbe, TokenResolver
from tests.property.conftest import error_codes, messages, origin_subsets
from tests.property.settings import SLOW_SETTINGS, STANDARD_SETTINGS

_FILES = {
    TokenOrigin.LOCAL_ENV_LOCAL: ("cwd", ".env.local"),
    TokenOrigin.LOCAL_ENV: ("cwd", ".env"),
    TokenOrigin.ROOT_ENV_LOCAL: ("root", ".env.local"),
    TokenOrigin.ROOT_ENV: ("root", ".env"),
}


def _credential(origin: TokenOrigin) -> str:
    return f"pss_service:v2:{origin.priority}-{origin.value}"


def _resolve(populated: set[TokenOrigin]) -> tuple[TokenSource | TokenNotFound, tuple[SourceCheck, ...]]:
    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp).resolve() / "repo"
        cwd = root / "service"
        cwd.mkdir(parents=True)
        (root / ".git").mkdir()
        environ: dict[str, str] = {}
        for origin in populated:
            if origin is TokenOrigin.PROCESS_ENVIRONMENT:
                environ["PHASE_SERVICE_TOKEN"] = _credential(origin)
                continue
            where, name = _FILES[origin]
            directory = cwd if where == "cwd" else root
            (directory / name).write_text(f"PHASE_SERVICE_TOKEN={_credential(origin)}\n")
        return TokenResolver(SourceProbe(environ=environ, cwd=cwd)).resolve_with_checks()


class TestResolutionProperties:
    @given(populated=origin_subsets)
    @SLOW_SETTINGS
    def test_highest_priority_origin_wins(self, populated: set[TokenOrigin]) -> None:
        outcome, checks = _resolve(populated)

        if not populated:
            assert isinstance(outcome, TokenNotFound)
            assert len(outcome.checks) == 5
        else:
            winner = min(populated, key=lambda o: o.priority)
            assert isinstance(outcome, TokenSource)
            assert outcome.origin is winner
            assert outcome.credential == _credential(winner)

        assert {c.origin for c in checks if c.has_credential} == populated


class TestClassificationProperties:
    @given(message=messages)
    @STANDARD_SETTINGS
    def test_classifier_is_total(self, message: str) -> None:
        assert isinstance(classify_provider_error(RuntimeError(message)), ErrorCode)

    @given(code=error_codes, message=messages)
    @STANDARD_SETTINGS
    def test_resolution_error_code_preserved(self, code: ErrorCode, message: str) -> None:
        assert classify_provider_error(ResolutionError(code, message)) is code

    @given(message=st.sampled_from(["429 Too Many Requests", "rate limit hit", "too many requests, slow down"]))
    @STANDARD_SETTINGS
    def test_rate_limit_messages_are_retryable(self, message: str) -> None:
        code = classify_provider_error(RuntimeError(message))

        assert code is ErrorCode.RATE_LIMIT_EXCEEDED
        assert code.is_retryable
