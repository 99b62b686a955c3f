"""Tests for XDG directory resolution."""

from __future__ import annotations

from pathlib import Path

from contenant.dirs import AppDirs


def test_defaults_under_home():
    dirs = AppDirs.from_env({"HOME": "/home/alice"})
    assert dirs.home == Path("/home/alice")
    assert dirs.config_home == Path("/home/alice/.config/contenant")
    assert dirs.cache_home == Path("/home/alice/.cache/contenant")
    assert dirs.state_home == Path("/home/alice/.local/state/contenant")


def test_xdg_overrides():
    dirs = AppDirs.from_env(
        {
            "HOME": "/home/alice",
            "XDG_CONFIG_HOME": "/cfg",
            "XDG_CACHE_HOME": "/cache",
            "XDG_STATE_HOME": "/state",
        }
    )
    assert dirs.config_file == Path("/cfg/contenant/config.toml")
    assert dirs.build_context == Path("/cache/contenant/build")
    assert dirs.state_home == Path("/state/contenant")


def test_relative_xdg_values_ignored():
    dirs = AppDirs.from_env({"HOME": "/home/alice", "XDG_CONFIG_HOME": "relative/cfg"})
    assert dirs.config_home == Path("/home/alice/.config/contenant")


def test_empty_xdg_value_ignored():
    dirs = AppDirs.from_env({"HOME": "/home/alice", "XDG_STATE_HOME": ""})
    assert dirs.state_home == Path("/home/alice/.local/state/contenant")


def test_state_paths():
    dirs = AppDirs.from_env({"HOME": "/home/alice"})
    assert dirs.state_path("ssh", "known_hosts") == Path(
        "/home/alice/.local/state/contenant/ssh/known_hosts"
    )
    assert dirs.project_state_dir("abc-app") == Path(
        "/home/alice/.local/state/contenant/projects/abc-app"
    )
