"""Data models shared between the orchestrator and the container runtime."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

CONTAINER_HOME = "/home/claude"
CONTAINER_WORKDIR = "/workspace"
ALLOWLIST_CONTAINER_PATH = "/etc/contenant/allowed-ips"
BRIDGE_URL_ENV = "CONTENANT_BRIDGE_URL"


@dataclass(frozen=True)
class VolumeMount:
    host_path: str  # absolute
    container_path: str  # absolute
    readonly: bool = True


@dataclass(frozen=True)
class RunSpec:
    """Everything the runtime needs for one ``run``. Used once, then discarded."""

    image: str
    workdir: Path  # host project directory, mounted at CONTAINER_WORKDIR
    mounts: tuple[VolumeMount, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    args: tuple[str, ...] = ()  # forwarded to the assistant
