"""Container runtime capability.

The orchestrator and image pipeline only ever need three things from a
container runtime: build an image, tag an image, and run one. Anything that
implements :class:`ContainerRuntime` can stand in for Docker.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from contenant.types import RunSpec


@runtime_checkable
class ContainerRuntime(Protocol):
    """Runtime contract. Build and tag raise ImageBuildError on failure."""

    def build(
        self, tag: str, context: Path, build_args: Mapping[str, str] | None = None
    ) -> None: ...

    def tag(self, source: str, target: str) -> None: ...

    def run(self, spec: RunSpec) -> int:
        """Run the container in the foreground and return its exit code.

        Raises ContainerStartError if the runtime cannot be spawned and
        ContainerSignalledError if it is killed by a signal.
        """
        ...


_runtime: ContainerRuntime | None = None


def get_runtime() -> ContainerRuntime:
    """Lazy singleton for the configured runtime."""
    global _runtime  # noqa: PLW0603
    if _runtime is None:
        from contenant.config.settings import get_settings
        from contenant.runtime.docker import DockerRuntime

        s = get_settings()
        _runtime = DockerRuntime(cli=s.runtime_cli, container_host=s.container_host)
    return _runtime


def reset_runtime() -> None:
    """Clear the cached singleton (for tests)."""
    global _runtime  # noqa: PLW0603
    _runtime = None
