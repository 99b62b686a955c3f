"""Volume mount list construction and project identity."""

from __future__ import annotations

import hashlib
import os
import posixpath
import re
from collections.abc import Iterable, Mapping
from pathlib import Path

from contenant.config.models import MountSpec
from contenant.container_runner._expand import PathExpander, rehome
from contenant.dirs import AppDirs
from contenant.logger import logger
from contenant.types import ALLOWLIST_CONTAINER_PATH, CONTAINER_HOME, CONTAINER_WORKDIR, VolumeMount

_IDENTITY_HASH_LEN = 12
_IDENTITY_NAME_MAX = 64
_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")


def project_identity(project_dir: Path) -> str:
    """Stable short fingerprint of a project directory.

    The path is canonicalized first (symlinks and ``..`` resolved) so every
    route to the same directory yields the same identity. The result is
    ``<sha256 prefix>-<directory name>`` and is safe to use both as a
    directory name and as an image tag.
    """
    canonical = project_dir.resolve(strict=True)
    digest = hashlib.sha256(os.fsencode(canonical)).hexdigest()[:_IDENTITY_HASH_LEN]
    name = _UNSAFE_NAME_CHARS.sub("-", canonical.name).strip(".-")[:_IDENTITY_NAME_MAX]
    return f"{digest}-{name}" if name else digest


def resolve_mount(spec: MountSpec, expander: PathExpander) -> VolumeMount:
    """Expand a user mount into absolute host and container paths.

    Relative sources resolve against the directory of the config layer that
    declared them. A missing target mirrors the source, re-rooted from the host
    home to the container home.
    """
    source = expander.expand_host(spec.source)
    if not os.path.isabs(source):
        base = spec.base_dir if spec.base_dir is not None else Path(expander.config_dir)
        source = os.path.join(base, source)
    source = os.path.normpath(source)

    if spec.target is None:
        target = rehome(source, expander.host_home, expander.container_home)
    else:
        target = expander.expand_container(spec.target)
        if not posixpath.isabs(target):
            target = posixpath.join(expander.container_home, target)
    target = posixpath.normpath(target)

    return VolumeMount(host_path=source, container_path=target, readonly=spec.readonly)


def resolve_env(env: Mapping[str, str], expander: PathExpander) -> dict[str, str]:
    """Expand user env values; ``~`` refers to the container home."""
    return {key: expander.expand_container(value) for key, value in env.items()}


def build_state_mounts(dirs: AppDirs, project_id: str) -> list[VolumeMount]:
    """Mounts for state contenant owns, creating host paths as needed.

    Order matters: later mounts shadow subpaths of earlier ones, so the
    per-project and skills mounts must follow the shared ``.claude`` mount.
    """
    mounts: list[VolumeMount] = []

    # Shared credentials and settings (auth survives across projects)
    claude_state = dirs.state_path("claude")
    claude_state.mkdir(parents=True, exist_ok=True)
    mounts.append(VolumeMount(str(claude_state), f"{CONTAINER_HOME}/.claude", readonly=False))

    # Conversation history is keyed by cwd inside the container, which is always
    # /workspace, so give each project its own copy of that directory.
    project_state = dirs.project_state_dir(project_id)
    project_state.mkdir(parents=True, exist_ok=True)
    history_dir = "-" + CONTAINER_WORKDIR.strip("/").replace("/", "-")
    mounts.append(
        VolumeMount(
            str(project_state),
            f"{CONTAINER_HOME}/.claude/projects/{history_dir}",
            readonly=False,
        )
    )

    skills_dir = dirs.config_home / "skills"
    if skills_dir.is_dir():
        mounts.append(VolumeMount(str(skills_dir), f"{CONTAINER_HOME}/.claude/skills"))

    known_hosts = dirs.state_path("ssh", "known_hosts")
    if not known_hosts.exists():
        known_hosts.parent.mkdir(parents=True, exist_ok=True)
        known_hosts.touch()
    mounts.append(VolumeMount(str(known_hosts), f"{CONTAINER_HOME}/.ssh/known_hosts", readonly=False))

    return mounts


def build_volume_mounts(
    dirs: AppDirs,
    project_id: str,
    user_mounts: Iterable[MountSpec],
    allowlist_path: Path,
    expander: PathExpander,
) -> list[VolumeMount]:
    """Full mount list: owned state first, user mounts in merged order, allowlist last.

    The allowlist goes last so no user mount can shadow it.
    """
    mounts = build_state_mounts(dirs, project_id)
    for spec in user_mounts:
        mount = resolve_mount(spec, expander)
        logger.debug(
            "User mount",
            source=mount.host_path,
            target=mount.container_path,
            readonly=mount.readonly,
        )
        mounts.append(mount)
    mounts.append(VolumeMount(str(allowlist_path), ALLOWLIST_CONTAINER_PATH, readonly=True))
    return mounts
