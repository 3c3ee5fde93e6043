# tests/conftest.py
"""Shared test fixtures and helpers.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/

Workspace fixture layout (all under tmp_path):

    repo/               <- workspace root (.git marker)
      .env / .env.local (written per test)
      apps/web/         <- current directory for source checks and local .env loading
"""

import logging
import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
import structlog
from hypothesis import HealthCheck, Phase, Verbosity, settings

from phaseconf.core.config import PhaseConfSettings
from phaseconf.core.retry import RetryConfig
from phaseconf.monitoring.monitor import Monitor
from phaseconf.service import ConfigurationService
from phaseconf.testing import FakeProvider

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    suppress_health_check=[HealthCheck.function_scoped_fixture],
    deadline=None,
)
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    suppress_health_check=[HealthCheck.function_scoped_fixture],
    deadline=None,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


VALID_TOKEN = "pss_service:v2:0a1b2c3d4e5f"
FAST_RETRY = RetryConfig(max_attempts=3, base_delay=0.001, max_delay=0.002, jitter=0.0)


@dataclass(frozen=True)
class Workspace:
    root: Path
    cwd: Path

    def write_root(self, name: str, content: str) -> Path:
        path = self.root / name
        path.write_text(content)
        return path

    def write_local(self, name: str, content: str) -> Path:
        path = self.cwd / name
        path.write_text(content)
        return path


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    """A workspace root (marked by .git) with a nested current directory."""
    root = tmp_path / "repo"
    cwd = root / "apps" / "web"
    cwd.mkdir(parents=True)
    (root / ".git").mkdir()
    return Workspace(root=root.resolve(), cwd=cwd.resolve())


@pytest.fixture
def fake_provider() -> FakeProvider:
    provider = FakeProvider()
    provider.add_app("demo", {"production": {"FOO": "bar"}, "development": {"FOO": "dev"}})
    return provider


@pytest.fixture
def monitor() -> Monitor:
    return Monitor(clock=lambda: 1_000.0)


@pytest.fixture
def make_service(
    workspace: Workspace,
    fake_provider: FakeProvider,
) -> Iterator[Callable[..., ConfigurationService]]:
    """Factory for a ConfigurationService wired to the fake provider and workspace.

    Keyword arguments override the defaults (environ, adapter, settings,
    retry_config, ...). Every service created is closed at teardown.
    """
    created: list[ConfigurationService] = []

    def _make(**overrides: Any) -> ConfigurationService:
        kwargs: dict[str, Any] = {
            "settings": PhaseConfSettings(),
            "adapter": fake_provider,
            "environ": {},
            "cwd": workspace.cwd,
            "retry_config": FAST_RETRY,
        }
        kwargs.update(overrides)
        service = ConfigurationService(**kwargs)
        created.append(service)
        return service

    yield _make

    for service in created:
        service.close()


@pytest.fixture(autouse=True)
def _reset_default_service() -> Iterator[None]:
    from phaseconf.runtime import reset_default_service

    yield
    reset_default_service()


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Undo configure_logging() so handlers never outlive a captured stream."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()
