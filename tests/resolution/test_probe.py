# tests/resolution/test_probe.py
"""Tests for SourceProbe and its helpers."""

from pathlib import Path

from phaseconf.contracts import TokenOrigin
from phaseconf.core.config import TokenSettings
from phaseconf.resolution.probe import SourceProbe, describe_origin, find_workspace_root, read_credential
from tests.conftest import Workspace

TOKEN = "pss_service:v2:0a1b2c3d4e5f"


class TestReadCredential:
    def test_missing_file_returns_none(self, tmp_path: Path) -> None:
        assert read_credential(tmp_path / ".env", "PHASE_SERVICE_TOKEN") is None

    def test_tolerates_comments_quotes_and_blank_lines(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text(f'# service credentials\n\nOTHER=1\nPHASE_SERVICE_TOKEN="{TOKEN}"\n')

        assert read_credential(env_file, "PHASE_SERVICE_TOKEN") == TOKEN

    def test_single_quotes_and_export_prefix(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text(f"export PHASE_SERVICE_TOKEN='{TOKEN}'\n")

        assert read_credential(env_file, "PHASE_SERVICE_TOKEN") == TOKEN

    def test_malformed_lines_skipped(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text(f"this line is not an assignment\nPHASE_SERVICE_TOKEN={TOKEN}\n")

        assert read_credential(env_file, "PHASE_SERVICE_TOKEN") == TOKEN

    def test_blank_value_is_no_credential(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text("PHASE_SERVICE_TOKEN=   \n")

        assert read_credential(env_file, "PHASE_SERVICE_TOKEN") is None

    def test_undecodable_file_is_no_credential(self, tmp_path: Path) -> None:
        env_file = tmp_path / ".env"
        env_file.write_bytes(b"PHASE_SERVICE_TOKEN=\xff\xfe\xfa\n")

        assert read_credential(env_file, "PHASE_SERVICE_TOKEN") is None

    def test_directory_named_like_env_file(self, tmp_path: Path) -> None:
        (tmp_path / ".env").mkdir()

        assert read_credential(tmp_path / ".env", "PHASE_SERVICE_TOKEN") is None


class TestFindWorkspaceRoot:
    def test_finds_nearest_indicator(self, workspace: Workspace) -> None:
        assert find_workspace_root(workspace.cwd, [".git"]) == workspace.root

    def test_no_indicator_returns_start(self, tmp_path: Path) -> None:
        start = tmp_path / "a" / "b"
        start.mkdir(parents=True)

        assert find_workspace_root(start, ["definitely-not-present.marker"]) == start

    def test_nested_indicator_wins(self, workspace: Workspace) -> None:
        (workspace.cwd / "uv.lock").write_text("")

        assert find_workspace_root(workspace.cwd, [".git", "uv.lock"]) == workspace.cwd


class TestSourceProbe:
    def test_reports_five_origins_in_priority_order(self, workspace: Workspace) -> None:
        probe = SourceProbe(environ={}, cwd=workspace.cwd)

        checks = probe.probe()

        assert [c.origin for c in checks] == list(TokenOrigin)
        assert [c.check_order for c in checks] == [1, 2, 3, 4, 5]
        assert not any(c.has_credential for c in checks)

    def test_paths_follow_cwd_and_root(self, workspace: Workspace) -> None:
        checks = SourceProbe(environ={}, cwd=workspace.cwd).probe()

        assert checks[0].path is None
        assert checks[1].path == workspace.cwd / ".env.local"
        assert checks[2].path == workspace.cwd / ".env"
        assert checks[3].path == workspace.root / ".env.local"
        assert checks[4].path == workspace.root / ".env"

    def test_existence_and_credential_reported_separately(self, workspace: Workspace) -> None:
        workspace.write_local(".env", "UNRELATED=1\n")
        workspace.write_root(".env", f"PHASE_SERVICE_TOKEN={TOKEN}\n")

        checks = {c.origin: c for c in SourceProbe(environ={}, cwd=workspace.cwd).probe()}

        assert checks[TokenOrigin.LOCAL_ENV].exists
        assert not checks[TokenOrigin.LOCAL_ENV].has_credential
        assert checks[TokenOrigin.ROOT_ENV].exists
        assert checks[TokenOrigin.ROOT_ENV].has_credential

    def test_process_environment_is_injectable(self, workspace: Workspace) -> None:
        checks = SourceProbe(environ={"PHASE_SERVICE_TOKEN": TOKEN}, cwd=workspace.cwd).probe()

        assert checks[0].exists
        assert checks[0].has_credential

    def test_blank_environment_value_exists_without_credential(self, workspace: Workspace) -> None:
        checks = SourceProbe(environ={"PHASE_SERVICE_TOKEN": "  "}, cwd=workspace.cwd).probe()

        assert checks[0].exists
        assert not checks[0].has_credential

    def test_root_origins_suppressed_when_root_is_cwd(self, workspace: Workspace) -> None:
        workspace.write_root(".env", f"PHASE_SERVICE_TOKEN={TOKEN}\n")

        checks = SourceProbe(environ={}, cwd=workspace.root).probe()

        assert checks[2].origin is TokenOrigin.LOCAL_ENV
        assert checks[2].has_credential
        assert not checks[4].exists
        assert not checks[4].has_credential

    def test_explicit_workspace_root(self, workspace: Workspace, tmp_path: Path) -> None:
        other_root = tmp_path / "elsewhere"
        other_root.mkdir()
        (other_root / ".env.local").write_text(f"PHASE_SERVICE_TOKEN={TOKEN}\n")

        checks = SourceProbe(environ={}, cwd=workspace.cwd).probe(workspace_root=other_root)

        assert checks[3].path == other_root.resolve() / ".env.local"
        assert checks[3].has_credential

    def test_custom_variable_name(self, workspace: Workspace) -> None:
        workspace.write_local(".env", f"MY_TOKEN={TOKEN}\n")
        probe = SourceProbe(TokenSettings(variable_name="MY_TOKEN"), environ={}, cwd=workspace.cwd)

        source, _ = probe.first_source()

        assert source is not None
        assert source.origin is TokenOrigin.LOCAL_ENV

    def test_probe_does_not_modify_files(self, workspace: Workspace) -> None:
        env_file = workspace.write_local(".env.local", f"PHASE_SERVICE_TOKEN={TOKEN}\n")
        before = env_file.read_text()

        SourceProbe(environ={}, cwd=workspace.cwd).probe()

        assert env_file.read_text() == before


class TestDescribeOrigin:
    def test_process_environment_names_variable(self) -> None:
        assert describe_origin(TokenOrigin.PROCESS_ENVIRONMENT) == "environment variable PHASE_SERVICE_TOKEN"

    def test_file_origin(self) -> None:
        assert describe_origin(TokenOrigin.ROOT_ENV_LOCAL) == "workspace root .env.local file"
