"""Launcher settings: knobs for contenant itself, read from the environment.

These are distinct from the layered user config: they describe how the host
talks to the container runtime, not what goes into the container.

Environment variables use the ``CONTENANT_`` prefix, e.g.
``CONTENANT_RUNTIME_CLI=podman``.
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LauncherSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CONTENANT_", extra="ignore")

    runtime_cli: str = "docker"  # any Docker-compatible CLI
    container_host: str = "host.docker.internal"  # hostname containers use to reach host
    image_name: str = "contenant"  # repository part of every stage tag

    @field_validator("image_name")
    @classmethod
    def _lowercase_repository(cls, v: str) -> str:
        # Image repositories must be lowercase
        return v.lower()


_settings: LauncherSettings | None = None


def get_settings() -> LauncherSettings:
    """Lazy cached singleton."""
    global _settings
    if _settings is None:
        _settings = LauncherSettings()
    return _settings


def reset_settings() -> None:
    """Clear the cached singleton (for tests)."""
    global _settings
    _settings = None
