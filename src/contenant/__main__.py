"""Entry point for `python -m contenant` / `contenant`.

Usage:
    contenant [ARGS...]                     Run Claude Code for the current directory;
                                            ARGS are passed through to claude
    contenant -- bridge ...                 Same, when the first ARG is literally "bridge"
    contenant bridge [--port N] [--host H]  Start the host bridge service

The exit code is the container's own exit code, or 125 when contenant itself
fails before or around the run.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import sys
from collections.abc import Sequence
from pathlib import Path

from contenant.errors import ContenantError
from contenant.logger import logger

EXIT_ORCHESTRATION_FAILURE = 125


def _run(args: Sequence[str]) -> int:
    from contenant.container_runner import Contenant

    return Contenant.from_environment(Path.cwd()).run(args)


def _bridge(argv: Sequence[str]) -> int:
    from contenant.bridge import serve_bridge
    from contenant.config import load_config
    from contenant.dirs import AppDirs

    parser = argparse.ArgumentParser(
        prog="contenant bridge",
        description="Expose configured host triggers to containers over HTTP",
    )
    parser.add_argument("--port", type=int, default=None, help="Override bridge.port")
    parser.add_argument("--host", default=None, help="Override bridge.host")
    opts = parser.parse_args(argv)

    policy = load_config(AppDirs.from_env()).bridge
    if opts.port is not None:
        policy = dataclasses.replace(policy, port=opts.port)
    if opts.host is not None:
        policy = dataclasses.replace(policy, host=opts.host)

    asyncio.run(serve_bridge(policy))
    return 0


def main(argv: Sequence[str] | None = None) -> None:
    args = list(sys.argv[1:] if argv is None else argv)

    try:
        match args:
            case ["bridge", *rest]:
                code = _bridge(rest)
            case ["--", *rest]:
                code = _run(rest)
            case _:
                code = _run(args)
    except ContenantError as exc:
        logger.error(str(exc), error_type=type(exc).__name__)
        code = EXIT_ORCHESTRATION_FAILURE
    except FileNotFoundError as exc:
        # Project directory vanished between cwd lookup and canonicalization
        logger.error("Project directory not found", path=exc.filename)
        code = EXIT_ORCHESTRATION_FAILURE

    sys.exit(code)


if __name__ == "__main__":
    main()
