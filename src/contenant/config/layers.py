"""Reading configuration layers from disk.

A layer is one config file with a fixed precedence position. Layers are
returned lowest precedence first; :func:`contenant.config.resolve.resolve_config`
does the merging and never touches the filesystem.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path

from pydantic import ValidationError

from contenant.config.models import LayerConfig
from contenant.dirs import AppDirs
from contenant.errors import ConfigParseError
from contenant.logger import logger


class ConfigOrigin(StrEnum):
    """Where a layer came from. Append new origins in precedence order."""

    USER = "user"


@dataclass(frozen=True)
class ConfigLayer:
    origin: ConfigOrigin
    settings: LayerConfig
    path: Path | None = None

    @property
    def base_dir(self) -> Path | None:
        """Directory relative mount sources in this layer resolve against."""
        return self.path.parent if self.path is not None else None


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def parse_layer(origin: ConfigOrigin, text: str, path: Path | None = None) -> ConfigLayer:
    """Parse TOML text into a layer, raising ConfigParseError on any problem."""
    try:
        raw = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigParseError(origin, path, f"invalid TOML: {exc}") from exc

    try:
        settings = LayerConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigParseError(origin, path, _format_validation_error(exc)) from exc

    return ConfigLayer(origin=origin, settings=settings, path=path)


def load_layer(origin: ConfigOrigin, path: Path) -> ConfigLayer:
    """Load one layer. A missing file is an empty layer, not an error."""
    if not path.exists():
        logger.debug("Config file not found, using empty layer", origin=str(origin), path=str(path))
        return ConfigLayer(origin=origin, settings=LayerConfig(), path=path)

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigParseError(origin, path, f"cannot read file: {exc}") from exc

    layer = parse_layer(origin, text, path)
    logger.debug("Loaded config layer", origin=str(origin), path=str(path))
    return layer


def layer_paths(dirs: AppDirs) -> list[tuple[ConfigOrigin, Path]]:
    """Config file location for each origin, lowest precedence first."""
    return [(ConfigOrigin.USER, dirs.config_file)]


def load_layers(dirs: AppDirs) -> list[ConfigLayer]:
    """Load every layer. Any failing layer aborts the whole load."""
    return [load_layer(origin, path) for origin, path in layer_paths(dirs)]
