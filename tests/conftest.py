"""Shared test fixtures for contenant."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from contenant.dirs import AppDirs
from contenant.errors import ImageBuildError
from contenant.types import RunSpec

# ---------------------------------------------------------------------------
# Shared helpers (plain functions, not fixtures, importable by test files)
# ---------------------------------------------------------------------------


def make_dirs(root: Path) -> AppDirs:
    """AppDirs rooted entirely under *root*, with the host home at ``root/home``."""
    home = root / "home"
    home.mkdir(parents=True, exist_ok=True)
    return AppDirs(
        home=home,
        config_home=home / ".config" / "contenant",
        cache_home=home / ".cache" / "contenant",
        state_home=home / ".local" / "state" / "contenant",
    )


@dataclass
class FakeRuntime:
    """In-memory ContainerRuntime that records every call."""

    exit_code: int = 0
    fail_on_build: set[str] = field(default_factory=set)
    calls: list[tuple] = field(default_factory=list)
    run_specs: list[RunSpec] = field(default_factory=list)
    on_run: object = None  # optional callable(spec) invoked during run

    def build(self, tag: str, context: Path, build_args: Mapping[str, str] | None = None) -> None:
        self.calls.append(("build", tag, context, dict(build_args or {})))
        if tag in self.fail_on_build:
            raise ImageBuildError(tag, 1)

    def tag(self, source: str, target: str) -> None:
        self.calls.append(("tag", source, target))

    def run(self, spec: RunSpec) -> int:
        self.calls.append(("run", spec.image))
        self.run_specs.append(spec)
        if callable(self.on_run):
            self.on_run(spec)
        return self.exit_code

    def built_tags(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "build"]


# ---------------------------------------------------------------------------
# Autouse fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Start each test from default launcher settings and no cached runtime.

    Built with ``model_construct`` so CONTENANT_* variables in the developer's
    shell never leak into tests.
    """
    from contenant.config.settings import LauncherSettings

    monkeypatch.setattr("contenant.config.settings._settings", LauncherSettings.model_construct())
    monkeypatch.setattr("contenant.runtime.runtime._runtime", None)


# ---------------------------------------------------------------------------
# Reusable fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def dirs(tmp_path: Path) -> AppDirs:
    return make_dirs(tmp_path)


@pytest.fixture
def fake_runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work" / "my-project"
    path.mkdir(parents=True)
    return path
