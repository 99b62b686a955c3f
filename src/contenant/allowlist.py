"""Network allowlist: resolve allowed domains into IPv4 CIDRs for the firewall.

Resolution happens once, on the host, before the container starts. The
container's firewall script loads the resulting file into an ipset, so the
allowlist is a snapshot: IPs that change after startup are not followed.

Failures here degrade rather than abort. A domain that does not resolve, or
a failed fetch of GitHub's published ranges, is logged and skipped so one
unreachable name never blocks the others.
"""

from __future__ import annotations

import asyncio
import ipaddress
import os
import socket
import tempfile
from collections.abc import Iterable, Sequence
from pathlib import Path
from types import TracebackType

import aiohttp
from aiohttp.abc import AbstractResolver

from contenant.logger import logger

GITHUB_API_DOMAIN = "api.github.com"
GITHUB_META_URL = "https://api.github.com/meta"
GITHUB_META_CATEGORIES = ("web", "api", "git")
_META_TIMEOUT = aiohttp.ClientTimeout(total=15)


def _ipv4_network(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    try:
        network = ipaddress.ip_network(value, strict=False)
    except ValueError:
        return None
    return str(network) if network.version == 4 else None


def extract_github_ranges(meta: object) -> list[str]:
    """Pull IPv4 CIDRs out of a GitHub ``/meta`` document."""
    if not isinstance(meta, dict):
        return []
    ranges: list[str] = []
    for category in GITHUB_META_CATEGORIES:
        values = meta.get(category)
        if not isinstance(values, list):
            continue
        for value in values:
            cidr = _ipv4_network(value)
            if cidr is not None:
                ranges.append(cidr)
    return ranges


async def fetch_github_ranges(session: aiohttp.ClientSession) -> list[str]:
    """Fetch GitHub's published IPv4 ranges; any failure yields an empty list."""
    logger.info("Fetching GitHub IP ranges", url=GITHUB_META_URL)
    try:
        async with session.get(GITHUB_META_URL, raise_for_status=True) as resp:
            meta = await resp.json()
    except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
        logger.warning("Failed to fetch GitHub IP ranges", url=GITHUB_META_URL, err=str(exc))
        return []

    ranges = extract_github_ranges(meta)
    logger.info("Fetched GitHub IP ranges", count=len(ranges))
    return ranges


async def resolve_domain(resolver: AbstractResolver, domain: str) -> list[str]:
    """A-record lookup for one domain, as ``/32`` entries. Failure yields []."""
    try:
        records = await resolver.resolve(domain, 0, family=socket.AF_INET)
    except (OSError, UnicodeError) as exc:
        # UnicodeError: IDNA encoding rejects empty or over-long labels
        logger.warning("Failed to resolve domain", domain=domain, err=str(exc))
        return []

    entries: list[str] = []
    for record in records:
        cidr = _ipv4_network(f"{record['host']}/32")
        if cidr is not None:
            logger.debug("Adding IP", domain=domain, entry=cidr)
            entries.append(cidr)
    return entries


async def collect_allowlist(domains: Sequence[str]) -> list[str]:
    """Resolve every domain (and GitHub's ranges, if listed) concurrently.

    Returns de-duplicated entries in first-seen order: GitHub ranges first,
    then each domain's addresses in list order.
    """
    resolver = aiohttp.ThreadedResolver()
    try:
        async with aiohttp.ClientSession(timeout=_META_TIMEOUT) as session:
            lookups = [resolve_domain(resolver, domain) for domain in domains]
            if GITHUB_API_DOMAIN in domains:
                lookups.insert(0, fetch_github_ranges(session))
            results = await asyncio.gather(*lookups)
    finally:
        await resolver.close()

    return list(dict.fromkeys(entry for result in results for entry in result))


class AllowlistFile:
    """Owning handle for the allowlist file mounted into the container.

    The file exists exactly as long as the handle is open. Hold it (``with``)
    until the container run returns: some runtimes re-read bind-mounted
    files, so deleting it early would empty the allowlist mid-run.
    """

    def __init__(self, entries: Iterable[str], directory: Path | None = None) -> None:
        self.entries: tuple[str, ...] = tuple(entries)
        self._file = tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            prefix="contenant-allowed-ips-",
            suffix=".txt",
            dir=directory,
        )
        try:
            for entry in self.entries:
                self._file.write(f"{entry}\n")
            self._file.flush()
            os.fsync(self._file.fileno())
        except BaseException:
            self._file.close()
            raise

    @property
    def path(self) -> Path:
        return Path(self._file.name)

    @property
    def closed(self) -> bool:
        return self._file.closed

    def close(self) -> None:
        """Delete the file. Idempotent."""
        if not self._file.closed:
            self._file.close()

    def __enter__(self) -> AllowlistFile:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def resolve_allowlist(domains: Sequence[str], directory: Path | None = None) -> AllowlistFile:
    """Resolve *domains* and write the allowlist file. Caller owns the handle."""
    logger.info("Resolving network allowlist", domains=len(domains))
    entries = asyncio.run(collect_allowlist(domains))
    if not entries:
        logger.warning("Network allowlist is empty; the container will have no outbound access")
    allowlist = AllowlistFile(entries, directory=directory)
    logger.info("Wrote network allowlist", path=str(allowlist.path), entries=len(entries))
    return allowlist
