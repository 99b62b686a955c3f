"""Tilde and variable expansion for mount paths and env values.

Recognised forms: a leading ``~`` / ``~/``, ``$NAME`` and ``${NAME}``.
``HOST_HOME``, ``CONFIG_DIR`` and ``CONTAINER_HOME`` are always defined;
any other name is looked up in the process environment. An unknown name is
an error rather than an empty string, so a typo can never silently turn
``$PROJECTS/src`` into ``/src``.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from contenant.dirs import AppDirs
from contenant.errors import PathExpansionError
from contenant.types import CONTAINER_HOME

_VAR_RE = re.compile(
    r"\$(?:\{(?P<braced>[A-Za-z_][A-Za-z0-9_]*)\}|(?P<plain>[A-Za-z_][A-Za-z0-9_]*))"
)


@dataclass(frozen=True)
class PathExpander:
    host_home: str
    config_dir: str
    container_home: str = CONTAINER_HOME
    environ: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))

    @classmethod
    def from_dirs(cls, dirs: AppDirs, environ: Mapping[str, str] | None = None) -> PathExpander:
        return cls(
            host_home=str(dirs.home),
            config_dir=str(dirs.config_home),
            environ=dict(os.environ) if environ is None else dict(environ),
        )

    def _lookup(self, name: str, expression: str) -> str:
        builtins = {
            "HOST_HOME": self.host_home,
            "CONFIG_DIR": self.config_dir,
            "CONTAINER_HOME": self.container_home,
        }
        if name in builtins:
            return builtins[name]
        if name in self.environ:
            return self.environ[name]
        raise PathExpansionError(expression, name)

    def expand(self, expression: str, *, home: str) -> str:
        """Expand a leading tilde against *home*, then every variable."""
        value = expression
        if value == "~":
            value = home
        elif value.startswith("~/"):
            value = home.rstrip("/") + value[1:]

        def _sub(match: re.Match[str]) -> str:
            return self._lookup(match.group("braced") or match.group("plain"), expression)

        return _VAR_RE.sub(_sub, value)

    def expand_host(self, expression: str) -> str:
        return self.expand(expression, home=self.host_home)

    def expand_container(self, expression: str) -> str:
        return self.expand(expression, home=self.container_home)


def rehome(path: str, host_home: str, container_home: str) -> str:
    """Swap the host home prefix for the container home; other paths are kept."""
    try:
        relative = Path(path).relative_to(host_home)
    except ValueError:
        return path
    if relative == Path("."):
        return container_home
    return f"{container_home.rstrip('/')}/{relative.as_posix()}"
