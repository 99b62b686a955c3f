"""Docker container runtime for contenant."""

from __future__ import annotations

import contextlib
import signal
import subprocess
import sys
import threading
from collections.abc import Iterator, Mapping
from pathlib import Path

from contenant.errors import ContainerSignalledError, ContainerStartError, ImageBuildError
from contenant.logger import logger
from contenant.types import CONTAINER_WORKDIR, RunSpec

# Relayed to the runtime process while it runs in the foreground
_FORWARDED_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


def _mount_field(key: str, value: str) -> str:
    # --mount is parsed as CSV, so a value containing a comma or quote is quoted
    field = f"{key}={value}"
    if "," in field or '"' in field:
        return '"' + field.replace('"', '""') + '"'
    return field


def bind_mount_arg(host_path: str, container_path: str, *, readonly: bool) -> str:
    """Value for ``--mount``; unlike ``-v`` it is safe for paths containing ``:``."""
    fields = [
        "type=bind",
        _mount_field("source", host_path),
        _mount_field("target", container_path),
    ]
    if readonly:
        fields.append("readonly")
    return ",".join(fields)


def build_run_args(spec: RunSpec, *, tty: bool, container_host: str) -> list[str]:
    """Build CLI args for ``docker run``."""
    args = ["run", "-i", "--rm"]
    if tty:
        args.append("-t")
    # NET_ADMIN and NET_RAW are required for the entrypoint to program the firewall
    args.extend(["--cap-add=NET_ADMIN", "--cap-add=NET_RAW"])
    # Docker Desktop maps the host automatically; on Linux it requires --add-host
    args.extend(["--add-host", f"{container_host}:host-gateway"])
    args.extend(["--mount", bind_mount_arg(str(spec.workdir), CONTAINER_WORKDIR, readonly=False)])

    for m in spec.mounts:
        args.extend(["--mount", bind_mount_arg(m.host_path, m.container_path, readonly=m.readonly)])

    for key, value in spec.env.items():
        args.extend(["-e", f"{key}={value}"])

    args.extend(["-w", CONTAINER_WORKDIR, spec.image])
    args.extend(spec.args)
    return args


class _SignalRelay:
    """Relays termination signals to the runtime process once it exists.

    Signals that arrive before :meth:`attach` are held and delivered as soon
    as the process is attached.
    """

    def __init__(self) -> None:
        self.proc: subprocess.Popen | None = None
        self.pending: list[int] = []

    def __call__(self, signum: int, _frame: object) -> None:
        if self.proc is None:
            logger.info(
                "Signal received before container start", signal=signal.Signals(signum).name
            )
            self.pending.append(signum)
            return
        self._send(self.proc, signum)

    def attach(self, proc: subprocess.Popen) -> None:
        self.proc = proc
        while self.pending:
            self._send(proc, self.pending.pop(0))

    @staticmethod
    def _send(proc: subprocess.Popen, signum: int) -> None:
        logger.info("Forwarding signal to container", signal=signal.Signals(signum).name)
        with contextlib.suppress(ProcessLookupError):
            proc.send_signal(signum)


@contextlib.contextmanager
def _forward_signals() -> Iterator[_SignalRelay]:
    """Install relaying handlers for the duration of the block.

    Enter before spawning so no signal is lost between spawn and install.
    SIGINT is ignored rather than relayed: the child shares our process
    group, so the terminal already delivers it there. Handlers can only be
    installed from the main thread; elsewhere nothing is installed.
    """
    relay = _SignalRelay()
    if threading.current_thread() is not threading.main_thread():
        yield relay
        return

    previous = {sig: signal.signal(sig, relay) for sig in _FORWARDED_SIGNALS}
    previous[signal.SIGINT] = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        yield relay
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


class DockerRuntime:
    """Runtime adapter for the Docker CLI (or any CLI that speaks its dialect)."""

    def __init__(self, cli: str = "docker", container_host: str = "host.docker.internal") -> None:
        self.cli = cli
        self.container_host = container_host

    def build(self, tag: str, context: Path, build_args: Mapping[str, str] | None = None) -> None:
        logger.info("Building image", tag=tag, context=str(context))
        argv = [self.cli, "build", "-t", tag]
        for key, value in (build_args or {}).items():
            argv.extend(["--build-arg", f"{key}={value}"])
        argv.append(str(context))
        self._check(argv, tag)

    def tag(self, source: str, target: str) -> None:
        logger.info("Tagging image", source=source, target=target)
        self._check([self.cli, "tag", source, target], target)

    def run(self, spec: RunSpec) -> int:
        argv = [
            self.cli,
            *build_run_args(spec, tty=sys.stdin.isatty(), container_host=self.container_host),
        ]
        logger.info("Starting container", image=spec.image, mounts=len(spec.mounts))
        with _forward_signals() as relay:
            try:
                proc = subprocess.Popen(argv)
            except OSError as exc:
                raise ContainerStartError(f"Failed to start {self.cli}: {exc}") from exc
            relay.attach(proc)
            returncode = proc.wait()

        if returncode < 0:
            raise ContainerSignalledError(-returncode)
        logger.debug("Container exited", code=returncode)
        return returncode

    # ------------------------------------------------------------------

    def _check(self, argv: list[str], tag: str) -> None:
        try:
            result = subprocess.run(argv, check=False)
        except OSError as exc:
            raise ImageBuildError(tag, reason=f"cannot run {self.cli}: {exc}") from exc
        if result.returncode != 0:
            raise ImageBuildError(tag, result.returncode)
