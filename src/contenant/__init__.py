"""contenant: run Claude Code in an isolated, network-restricted container."""

__version__ = "0.1.0"
