"""Host bridge: lets processes inside the container run pre-approved host commands.

A small aiohttp service, started separately from any container run
(``contenant bridge``). Containers find it through ``CONTENANT_BRIDGE_URL``.

One endpoint::

    POST /triggers/{name}
      200 {"exit_code": int, "stdout": str, "stderr": str}  command ran (any exit code)
      404 {"error": ...}                                       no such trigger
      500 {"error": ...}                                       shell could not be spawned

A trigger's own failure is reported through ``exit_code``/``stderr`` and is not
an HTTP error. Each request spawns its own shell, so slow triggers never block
other requests. Commands are shielded from request cancellation: if the
client goes away, the command still runs to completion and its result is
dropped.
"""

from __future__ import annotations

import asyncio
import signal
from asyncio.subprocess import DEVNULL, PIPE
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import cast

from aiohttp import web

from contenant.config.models import BridgePolicy
from contenant.errors import BridgeError
from contenant.logger import logger


@dataclass(frozen=True)
class TriggerResult:
    exit_code: int
    stdout: str
    stderr: str

    def to_dict(self) -> dict[str, int | str]:
        return {"exit_code": self.exit_code, "stdout": self.stdout, "stderr": self.stderr}


@dataclass
class _BridgeState:
    triggers: Mapping[str, str]
    inflight: set[asyncio.Task[TriggerResult]] = field(default_factory=set)


_STATE_KEY: web.AppKey[_BridgeState] = web.AppKey("bridge_state", t=_BridgeState)


async def run_trigger(command: str) -> TriggerResult:
    """Run *command* through ``/bin/sh`` and capture its outcome.

    Raises OSError if the shell cannot be spawned.
    """
    proc = await asyncio.create_subprocess_shell(command, stdin=DEVNULL, stdout=PIPE, stderr=PIPE)
    stdout, stderr = await proc.communicate()
    return TriggerResult(
        exit_code=cast(int, proc.returncode),
        stdout=stdout.decode(errors="replace"),
        stderr=stderr.decode(errors="replace"),
    )


def _log_orphaned_result(task: asyncio.Task[TriggerResult]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Trigger task failed", task_name=task.get_name(), err=str(exc))


async def _handle_trigger(request: web.Request) -> web.Response:
    name = request.match_info["name"]
    state = request.app[_STATE_KEY]

    command = state.triggers.get(name)
    if command is None:
        logger.warning("Unknown trigger requested", trigger=name)
        return web.json_response({"error": f"Unknown trigger: {name}"}, status=404)

    logger.info("Executing trigger", trigger=name, command=command)
    task = asyncio.create_task(run_trigger(command), name=f"trigger:{name}")
    state.inflight.add(task)
    task.add_done_callback(state.inflight.discard)
    task.add_done_callback(_log_orphaned_result)

    try:
        result = await asyncio.shield(task)
    except OSError as exc:
        logger.error("Failed to spawn trigger", trigger=name, err=str(exc))
        return web.json_response({"error": f"Failed to run trigger {name}: {exc}"}, status=500)

    logger.info("Trigger finished", trigger=name, exit_code=result.exit_code)
    return web.json_response(result.to_dict())


def create_bridge_app(triggers: Mapping[str, str]) -> web.Application:
    app = web.Application()
    app[_STATE_KEY] = _BridgeState(triggers=MappingProxyType(dict(triggers)))
    app.router.add_post("/triggers/{name}", _handle_trigger)
    return app


async def start_bridge(policy: BridgePolicy) -> web.AppRunner:
    """Create, start, and return the bridge runner. Bind failures are fatal."""
    if not policy.triggers:
        logger.warning("Bridge started with no triggers configured")

    runner = web.AppRunner(create_bridge_app(policy.triggers))
    await runner.setup()
    site = web.TCPSite(runner, policy.host, policy.port)
    try:
        await site.start()
    except OSError as exc:
        await runner.cleanup()
        raise BridgeError(f"Cannot bind bridge to {policy.host}:{policy.port}: {exc}") from exc

    logger.info(
        "Bridge listening",
        host=policy.host,
        port=policy.port,
        triggers=sorted(policy.triggers),
    )
    return runner


async def serve_bridge(policy: BridgePolicy, stop: asyncio.Event | None = None) -> None:
    """Run the bridge until *stop* is set, or until SIGINT/SIGTERM if none is given."""
    runner = await start_bridge(policy)
    loop = asyncio.get_running_loop()
    handled: list[signal.Signals] = []
    if stop is None:
        stop = asyncio.Event()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop.set)
            handled.append(sig)

    try:
        await stop.wait()
    finally:
        for sig in handled:
            loop.remove_signal_handler(sig)
        logger.info("Bridge shutting down")
        await runner.cleanup()
