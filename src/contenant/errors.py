"""Exceptions raised by contenant.

Everything the CLI treats as an orchestration-level failure derives from
:class:`ContenantError`. Recoverable problems (an unreachable domain, a failed
IP-range fetch) are logged as warnings and never raised.
"""

from __future__ import annotations

import signal
from pathlib import Path


class ContenantError(Exception):
    """Base class for orchestration-level failures."""


class ConfigParseError(ContenantError):
    """Raised when a configuration layer cannot be read or validated."""

    def __init__(self, origin: str, path: Path | None, detail: str) -> None:
        self.origin = origin
        self.path = path
        self.detail = detail
        where = f"{origin} config" if path is None else f"{origin} config at {path}"
        super().__init__(f"Invalid {where}: {detail}")


class PathExpansionError(ContenantError):
    """Raised when a path or env expression references an unknown variable."""

    def __init__(self, expression: str, variable: str) -> None:
        self.expression = expression
        self.variable = variable
        super().__init__(f"Cannot expand {expression!r}: variable ${variable} is not set")


class ImageBuildError(ContenantError):
    """Raised when building or tagging an image fails."""

    def __init__(self, tag: str, returncode: int | None = None, reason: str | None = None) -> None:
        self.tag = tag
        self.returncode = returncode
        if reason is None:
            reason = f"exit {returncode}"
        super().__init__(f"Image build failed for {tag} ({reason})")


class ContainerStartError(ContenantError):
    """Raised when the container runtime process cannot be spawned."""


class ContainerSignalledError(ContenantError):
    """Raised when the container runtime process is killed by a signal.

    Kept distinct from a non-zero exit so it is never mistaken for an exit
    code chosen by the application inside the container.
    """

    def __init__(self, signum: int) -> None:
        self.signum = signum
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = str(signum)
        super().__init__(f"Container terminated by signal {name}")


class BridgeError(ContenantError):
    """Raised when the bridge service cannot start."""
