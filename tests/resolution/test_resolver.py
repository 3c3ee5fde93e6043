# tests/resolution/test_resolver.py
"""Tests for TokenResolver priority resolution."""

import pytest

from phaseconf.contracts import TokenNotFound, TokenOrigin, TokenSource
from phaseconf.resolution import SourceProbe, TokenResolver, validate_token_format
from tests.conftest import Workspace

TOKEN_A = "pss_service:v2:aaaaaaaaaaaa"
TOKEN_B = "pss_service:v2:bbbbbbbbbbbb"


def _resolver(workspace: Workspace, environ: dict[str, str] | None = None) -> TokenResolver:
    return TokenResolver(SourceProbe(environ=environ or {}, cwd=workspace.cwd))


class TestTokenResolver:
    def test_no_credential_anywhere(self, workspace: Workspace) -> None:
        outcome = _resolver(workspace).resolve()

        assert isinstance(outcome, TokenNotFound)
        assert [c.origin for c in outcome.checks] == list(TokenOrigin)

    def test_process_environment_beats_every_file(self, workspace: Workspace) -> None:
        workspace.write_local(".env.local", f"PHASE_SERVICE_TOKEN={TOKEN_B}\n")

        outcome = _resolver(workspace, {"PHASE_SERVICE_TOKEN": TOKEN_A}).resolve()

        assert isinstance(outcome, TokenSource)
        assert outcome.origin is TokenOrigin.PROCESS_ENVIRONMENT
        assert outcome.credential == TOKEN_A
        assert outcome.path is None

    def test_local_env_local_beats_local_env(self, workspace: Workspace) -> None:
        workspace.write_local(".env", f"PHASE_SERVICE_TOKEN={TOKEN_B}\n")
        env_local = workspace.write_local(".env.local", f"PHASE_SERVICE_TOKEN={TOKEN_A}\n")

        outcome = _resolver(workspace).resolve()

        assert isinstance(outcome, TokenSource)
        assert outcome.origin is TokenOrigin.LOCAL_ENV_LOCAL
        assert outcome.path == env_local

    def test_local_beats_root(self, workspace: Workspace) -> None:
        workspace.write_root(".env.local", f"PHASE_SERVICE_TOKEN={TOKEN_A}\n")
        workspace.write_local(".env", f"PHASE_SERVICE_TOKEN={TOKEN_B}\n")

        outcome = _resolver(workspace).resolve()

        assert isinstance(outcome, TokenSource)
        assert outcome.origin is TokenOrigin.LOCAL_ENV
        assert outcome.credential == TOKEN_B

    def test_root_env_is_last_resort(self, workspace: Workspace) -> None:
        workspace.write_root(".env", f"PHASE_SERVICE_TOKEN={TOKEN_A}\n")

        outcome = _resolver(workspace).resolve()

        assert isinstance(outcome, TokenSource)
        assert outcome.origin is TokenOrigin.ROOT_ENV

    def test_shadowed_sources_remain_visible_in_checks(self, workspace: Workspace) -> None:
        workspace.write_local(".env", f"PHASE_SERVICE_TOKEN={TOKEN_A}\n")
        workspace.write_root(".env", f"PHASE_SERVICE_TOKEN={TOKEN_B}\n")

        outcome, checks = _resolver(workspace).resolve_with_checks()

        assert isinstance(outcome, TokenSource)
        assert outcome.origin is TokenOrigin.LOCAL_ENV
        with_credential = [c.origin for c in checks if c.has_credential]
        assert with_credential == [TokenOrigin.LOCAL_ENV, TokenOrigin.ROOT_ENV]

    def test_resolution_is_deterministic(self, workspace: Workspace) -> None:
        workspace.write_root(".env.local", f"PHASE_SERVICE_TOKEN={TOKEN_A}\n")
        resolver = _resolver(workspace)

        first = resolver.resolve()
        second = resolver.resolve()

        assert first == second


class TestValidateTokenFormat:
    @pytest.mark.parametrize(
        ("credential", "valid"),
        [
            (TOKEN_A, True),
            ("0123456789", True),
            ("short", False),
            ("", False),
            (None, False),
            ("has a space in it", False),
            ("tab\tinside-token", False),
        ],
    )
    def test_shape_rules(self, credential: str | None, valid: bool) -> None:
        assert validate_token_format(credential) is valid
