"""Layer merging, one pure function per field category.

Precedence differs by kind of field, so there is no generic
deep merge:

* scalars (tool version, allowed domains, bridge port/host): the last layer
  that sets the field wins; a layer that omits it changes nothing.
* additive lists (mounts): concatenated, lowest precedence first.
* maps (env, bridge triggers): merged key by key, higher layer wins per key.

All three take values ordered lowest → highest precedence, with ``None``
meaning "this layer did not set the field".
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from types import MappingProxyType
from typing import TypeVar

from contenant.config.layers import ConfigLayer
from contenant.config.models import (
    DEFAULT_BRIDGE_HOST,
    DEFAULT_BRIDGE_PORT,
    BridgePolicy,
    EffectiveConfig,
    MountSpec,
)

T = TypeVar("T")
V = TypeVar("V")


def resolve_scalar(values: Iterable[T | None], default: T | None = None) -> T | None:
    result = default
    for value in values:
        if value is not None:
            result = value
    return result


def concat_lists(values: Iterable[Sequence[T] | None]) -> list[T]:
    result: list[T] = []
    for value in values:
        if value:
            result.extend(value)
    return result


def merge_maps(values: Iterable[Mapping[str, V] | None]) -> dict[str, V]:
    result: dict[str, V] = {}
    for value in values:
        if value:
            result.update(value)
    return result


def _layer_mounts(layer: ConfigLayer) -> list[MountSpec] | None:
    if layer.settings.mounts is None:
        return None
    return [
        MountSpec(source=m.source, target=m.target, readonly=m.readonly, base_dir=layer.base_dir)
        for m in layer.settings.mounts
    ]


def resolve_config(layers: Sequence[ConfigLayer]) -> EffectiveConfig:
    """Merge ordered layers (lowest precedence first) into an EffectiveConfig."""
    settings = [layer.settings for layer in layers]
    bridges = [s.bridge for s in settings if s.bridge is not None]

    domains = resolve_scalar(s.allowed_domains for s in settings)

    return EffectiveConfig(
        tool_version=resolve_scalar(s.tool_version for s in settings),
        mounts=tuple(concat_lists(_layer_mounts(layer) for layer in layers)),
        env=MappingProxyType(merge_maps(s.env for s in settings)),
        allowed_domains=tuple(domains) if domains is not None else None,
        bridge=BridgePolicy(
            port=resolve_scalar((b.port for b in bridges), DEFAULT_BRIDGE_PORT),
            host=resolve_scalar((b.host for b in bridges), DEFAULT_BRIDGE_HOST),
            triggers=MappingProxyType(merge_maps(b.triggers for b in bridges)),
        ),
    )
