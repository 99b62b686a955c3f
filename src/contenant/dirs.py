"""XDG base directories, resolved once at startup and passed around explicitly.

Every component that needs a host path takes an :class:`AppDirs` instead of
reading the environment itself, so tests can point the whole tool at
``tmp_path`` by constructing one.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

APP_NAME = "contenant"


def _xdg_base(environ: Mapping[str, str], var: str, home: Path, fallback: str) -> Path:
    # The XDG spec says relative values must be ignored
    value = environ.get(var, "")
    if value and os.path.isabs(value):
        return Path(value)
    return home / fallback


@dataclass(frozen=True)
class AppDirs:
    """Per-application config/cache/state directories plus the host home."""

    home: Path
    config_home: Path
    cache_home: Path
    state_home: Path

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> AppDirs:
        env = os.environ if environ is None else environ
        home = Path(env["HOME"]) if env.get("HOME") else Path.home()
        return cls(
            home=home,
            config_home=_xdg_base(env, "XDG_CONFIG_HOME", home, ".config") / APP_NAME,
            cache_home=_xdg_base(env, "XDG_CACHE_HOME", home, ".cache") / APP_NAME,
            state_home=_xdg_base(env, "XDG_STATE_HOME", home, ".local/state") / APP_NAME,
        )

    @property
    def config_file(self) -> Path:
        return self.config_home / "config.toml"

    @property
    def build_context(self) -> Path:
        """Where the embedded base-image assets are written before building."""
        return self.cache_home / "build"

    def state_path(self, *parts: str) -> Path:
        return self.state_home.joinpath(*parts)

    def project_state_dir(self, project_id: str) -> Path:
        return self.state_home / "projects" / project_id
