"""Container runner: turns an EffectiveConfig into one container run.

This package is split into focused submodules:
  _expand        tilde/variable expansion for mount paths and env values
  _mounts        project identity and the ordered volume mount list
  _images        base → user → project image build pipeline
  _orchestrator  the Contenant run sequence
"""

from contenant.container_runner._expand import PathExpander
from contenant.container_runner._images import ImagePipeline, write_base_context
from contenant.container_runner._mounts import (
    build_state_mounts,
    build_volume_mounts,
    project_identity,
    resolve_env,
    resolve_mount,
)
from contenant.container_runner._orchestrator import Contenant

__all__ = [
    "Contenant",
    "ImagePipeline",
    "PathExpander",
    "build_state_mounts",
    "build_volume_mounts",
    "project_identity",
    "resolve_env",
    "resolve_mount",
    "write_base_context",
]
