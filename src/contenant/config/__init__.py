"""Layered configuration.

Usage::

    from contenant.config import load_config
    from contenant.dirs import AppDirs

    config = load_config(AppDirs.from_env())
    print(config.domains())
"""

from __future__ import annotations

from contenant.config.layers import ConfigLayer, ConfigOrigin, load_layer, load_layers, parse_layer
from contenant.config.models import (
    DEFAULT_ALLOWED_DOMAINS,
    BridgePolicy,
    EffectiveConfig,
    LayerConfig,
    MountSpec,
)
from contenant.config.resolve import concat_lists, merge_maps, resolve_config, resolve_scalar
from contenant.config.settings import LauncherSettings, get_settings, reset_settings
from contenant.dirs import AppDirs


def load_config(dirs: AppDirs) -> EffectiveConfig:
    """Read every layer and resolve them into one EffectiveConfig."""
    return resolve_config(load_layers(dirs))


__all__ = [
    "DEFAULT_ALLOWED_DOMAINS",
    "BridgePolicy",
    "ConfigLayer",
    "ConfigOrigin",
    "EffectiveConfig",
    "LauncherSettings",
    "LayerConfig",
    "MountSpec",
    "concat_lists",
    "get_settings",
    "load_config",
    "load_layer",
    "load_layers",
    "merge_maps",
    "parse_layer",
    "reset_settings",
    "resolve_config",
    "resolve_scalar",
]
