"""Top-level run sequence for one project.

Strictly sequential: config → images → allowlist → mounts → run. The
allowlist file is held open for the whole ``runtime.run`` call and released
on every exit path.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from functools import cached_property
from pathlib import Path

import structlog

from contenant.allowlist import AllowlistFile, resolve_allowlist
from contenant.config import EffectiveConfig, LauncherSettings, get_settings, load_config
from contenant.container_runner._expand import PathExpander
from contenant.container_runner._images import ImagePipeline
from contenant.container_runner._mounts import build_volume_mounts, project_identity, resolve_env
from contenant.dirs import AppDirs
from contenant.logger import logger
from contenant.runtime.runtime import ContainerRuntime, get_runtime
from contenant.types import BRIDGE_URL_ENV, RunSpec


class Contenant:
    """Runs Claude Code for one project directory.

    All collaborators are injected; :meth:`from_environment` wires up the
    real ones.
    """

    def __init__(
        self,
        project_dir: Path,
        *,
        dirs: AppDirs,
        config: EffectiveConfig,
        runtime: ContainerRuntime,
        settings: LauncherSettings | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.project_dir = project_dir.resolve(strict=True)
        self.dirs = dirs
        self.config = config
        self.runtime = runtime
        self.settings = settings if settings is not None else get_settings()
        self.expander = PathExpander.from_dirs(dirs, environ)

    @classmethod
    def from_environment(cls, project_dir: Path) -> Contenant:
        dirs = AppDirs.from_env()
        return cls(project_dir, dirs=dirs, config=load_config(dirs), runtime=get_runtime())

    @cached_property
    def project_id(self) -> str:
        return project_identity(self.project_dir)

    @property
    def bridge_url(self) -> str:
        return f"http://{self.settings.container_host}:{self.config.bridge.port}"

    def build_image(self) -> str:
        pipeline = ImagePipeline(self.runtime, self.dirs, self.settings.image_name)
        return pipeline.build(self.project_dir, self.project_id, self.config.tool_version)

    def build_env(self) -> dict[str, str]:
        env = resolve_env(self.config.env, self.expander)
        env[BRIDGE_URL_ENV] = self.bridge_url
        return env

    def build_run_spec(
        self, image: str, allowlist: AllowlistFile, args: Sequence[str] = ()
    ) -> RunSpec:
        mounts = build_volume_mounts(
            self.dirs,
            self.project_id,
            self.config.mounts,
            allowlist.path,
            self.expander,
        )
        return RunSpec(
            image=image,
            workdir=self.project_dir,
            mounts=tuple(mounts),
            env=self.build_env(),
            args=tuple(args),
        )

    def run(self, args: Sequence[str] = ()) -> int:
        """Build images, start the container and return its exit code."""
        with structlog.contextvars.bound_contextvars(project_id=self.project_id):
            logger.info("Starting project", project=str(self.project_dir))
            image = self.build_image()

            with resolve_allowlist(self.config.domains()) as allowlist:
                spec = self.build_run_spec(image, allowlist, args)
                return self.runtime.run(spec)
