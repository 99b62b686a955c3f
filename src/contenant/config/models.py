"""Configuration models.

Two families live here:

* pydantic models (``*Config``) describing what a single config file may
  contain. Every field is optional so a layer that omits a field is
  distinguishable from one that sets it to the default.
* frozen dataclasses (:class:`EffectiveConfig`, :class:`BridgePolicy`,
  :class:`MountSpec`) describing the merged result the rest of contenant
  consumes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DEFAULT_BRIDGE_PORT = 19432
DEFAULT_BRIDGE_HOST = "127.0.0.1"

# NOTE: keep in sync with the README's "Network allowlist" section
DEFAULT_ALLOWED_DOMAINS: tuple[str, ...] = (
    "api.anthropic.com",
    "statsig.anthropic.com",
    "statsig.com",
    "sentry.io",
    "registry.npmjs.org",
    "api.github.com",
)


class _StrictModel(BaseModel):
    """Base for all config models. Unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class MountConfig(_StrictModel):
    source: str
    target: str | None = None  # None → source re-rooted under the container home
    readonly: bool = True

    @field_validator("source")
    @classmethod
    def _non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("mount source cannot be empty")
        return v


class BridgeLayerConfig(_StrictModel):
    port: int | None = Field(default=None, ge=1, le=65535)
    host: str | None = None
    triggers: dict[str, str] | None = None


class LayerConfig(_StrictModel):
    """Contents of one config file (``config.toml``)."""

    tool_version: str | None = Field(
        default=None, validation_alias=AliasChoices("tool_version", "toolVersion")
    )
    mounts: list[MountConfig] | None = None
    env: dict[str, str] | None = None
    allowed_domains: list[str] | None = Field(
        default=None, validation_alias=AliasChoices("allowed_domains", "allowedDomains")
    )
    bridge: BridgeLayerConfig | None = None


# ---------------------------------------------------------------------------
# Resolved settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MountSpec:
    """A user-declared mount, bound to the directory of the layer it came from.

    ``base_dir`` is what relative sources resolve against, so behaviour never
    depends on where contenant was invoked from.
    """

    source: str
    target: str | None = None
    readonly: bool = True
    base_dir: Path | None = None


def _frozen_map(values: Mapping[str, str] | None = None) -> Mapping[str, str]:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class BridgePolicy:
    port: int = DEFAULT_BRIDGE_PORT
    host: str = DEFAULT_BRIDGE_HOST
    triggers: Mapping[str, str] = field(default_factory=_frozen_map)


@dataclass(frozen=True)
class EffectiveConfig:
    """Merged settings for one invocation. Built once, never mutated."""

    tool_version: str | None = None
    mounts: tuple[MountSpec, ...] = ()
    env: Mapping[str, str] = field(default_factory=_frozen_map)
    allowed_domains: tuple[str, ...] | None = None  # None → DEFAULT_ALLOWED_DOMAINS
    bridge: BridgePolicy = field(default_factory=BridgePolicy)

    def domains(self) -> tuple[str, ...]:
        if self.allowed_domains is None:
            return DEFAULT_ALLOWED_DOMAINS
        return self.allowed_domains
