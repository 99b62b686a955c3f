"""Three-stage image build: base → user → project.

Stage tags are fixed names, not content hashes. Every invocation rebuilds
the same tags and the runtime's layer cache decides how much work is skipped.

* base: built from the assets shipped with contenant; receives the pinned
  Claude Code version as a build arg.
* user: ``<config dir>/Dockerfile`` if present (should ``FROM`` the base
  tag), otherwise the base image is simply re-tagged.
* project: ``<project>/.contenant/Dockerfile`` if present (should ``FROM``
  the user tag), tagged per project; otherwise the user image is used.
"""

from __future__ import annotations

from importlib import resources
from pathlib import Path

from contenant.dirs import AppDirs
from contenant.logger import logger
from contenant.runtime.runtime import ContainerRuntime

BASE_ASSETS = ("Dockerfile", "claude.json", "entrypoint.sh")
_EXECUTABLE_ASSETS = frozenset({"entrypoint.sh"})
TOOL_VERSION_BUILD_ARG = "CLAUDE_CODE_VERSION"
USER_DOCKERFILE = "Dockerfile"
PROJECT_DOCKERFILE = Path(".contenant") / "Dockerfile"


def write_base_context(dest: Path) -> Path:
    """Copy the embedded base-image assets into *dest* and return it."""
    dest.mkdir(parents=True, exist_ok=True)
    assets = resources.files("contenant") / "assets"
    for name in BASE_ASSETS:
        target = dest / name
        target.write_bytes((assets / name).read_bytes())
        if name in _EXECUTABLE_ASSETS:
            target.chmod(0o755)
    return dest


class ImagePipeline:
    def __init__(self, runtime: ContainerRuntime, dirs: AppDirs, image_name: str = "contenant"):
        self.runtime = runtime
        self.dirs = dirs
        self.image_name = image_name

    @property
    def base_tag(self) -> str:
        return f"{self.image_name}:base"

    @property
    def user_tag(self) -> str:
        return f"{self.image_name}:user"

    def project_tag(self, project_id: str) -> str:
        return f"{self.image_name}:{project_id}"

    def build(self, project_dir: Path, project_id: str, tool_version: str | None = None) -> str:
        """Build every applicable stage and return the tag to run.

        Raises ImageBuildError from the runtime on the first failing stage.
        """
        context = write_base_context(self.dirs.build_context)
        build_args = {TOOL_VERSION_BUILD_ARG: tool_version} if tool_version else None
        self.runtime.build(self.base_tag, context, build_args)

        user_dockerfile = self.dirs.config_home / USER_DOCKERFILE
        if user_dockerfile.is_file():
            self.runtime.build(self.user_tag, user_dockerfile.parent)
        else:
            self.runtime.tag(self.base_tag, self.user_tag)

        project_dockerfile = project_dir / PROJECT_DOCKERFILE
        if not project_dockerfile.is_file():
            return self.user_tag

        tag = self.project_tag(project_id)
        self.runtime.build(tag, project_dockerfile.parent)
        logger.info("Using project image", tag=tag)
        return tag
