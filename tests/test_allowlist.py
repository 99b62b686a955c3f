"""Tests for the network allowlist resolver and its file handle."""

from __future__ import annotations

import socket
from pathlib import Path

import aiohttp
import pytest

from contenant import allowlist
from contenant.allowlist import (
    AllowlistFile,
    collect_allowlist,
    extract_github_ranges,
    fetch_github_ranges,
    resolve_allowlist,
    resolve_domain,
)


class FakeResolver:
    """Stands in for aiohttp.ThreadedResolver with a fixed answer table."""

    def __init__(self, answers: dict[str, list[str]]) -> None:
        self.answers = answers
        self.queries: list[tuple[str, int]] = []
        self.closed = False

    async def resolve(self, host: str, port: int = 0, family: int = socket.AF_INET):
        self.queries.append((host, family))
        if host not in self.answers:
            raise OSError(f"Name or service not known: {host}")
        return [
            {"hostname": host, "host": ip, "port": port, "family": family, "proto": 0, "flags": 0}
            for ip in self.answers[host]
        ]

    async def close(self) -> None:
        self.closed = True


class _FakeResponse:
    def __init__(self, payload: object = None, exc: BaseException | None = None) -> None:
        self.payload = payload
        self.exc = exc

    async def __aenter__(self) -> _FakeResponse:
        if self.exc is not None:
            raise self.exc
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None

    async def json(self) -> object:
        if isinstance(self.payload, BaseException):
            raise self.payload
        return self.payload


class FakeSession:
    def __init__(self, payload: object = None, exc: BaseException | None = None) -> None:
        self.payload = payload
        self.exc = exc
        self.urls: list[str] = []

    def get(self, url: str, **kwargs) -> _FakeResponse:
        self.urls.append(url)
        return _FakeResponse(self.payload, self.exc)


@pytest.fixture
def fake_resolver(monkeypatch) -> FakeResolver:
    resolver = FakeResolver(
        {
            "api.anthropic.com": ["160.79.104.10"],
            "registry.npmjs.org": ["104.16.1.34", "104.16.2.34"],
            "dup.example": ["104.16.1.34"],
        }
    )
    monkeypatch.setattr(allowlist.aiohttp, "ThreadedResolver", lambda: resolver)
    return resolver


# ---------------------------------------------------------------------------
# GitHub ranges
# ---------------------------------------------------------------------------


class TestExtractGithubRanges:
    def test_keeps_ipv4_from_relevant_categories(self):
        meta = {
            "web": ["192.30.252.0/22", "2a0a:a440::/29"],
            "api": ["140.82.112.0/20"],
            "git": ["185.199.108.0/22"],
            "hooks": ["10.0.0.0/8"],
        }
        assert extract_github_ranges(meta) == [
            "192.30.252.0/22",
            "140.82.112.0/20",
            "185.199.108.0/22",
        ]

    def test_normalizes_host_bits(self):
        assert extract_github_ranges({"web": ["192.30.252.7/22"]}) == ["192.30.252.0/22"]

    def test_garbage_entries_skipped(self):
        meta = {"web": ["not-a-cidr", 42, None], "api": "oops"}
        assert extract_github_ranges(meta) == []

    def test_non_mapping_document(self):
        assert extract_github_ranges(["web"]) == []


class TestFetchGithubRanges:
    async def test_success(self):
        session = FakeSession({"web": ["192.30.252.0/22"], "api": [], "git": []})
        assert await fetch_github_ranges(session) == ["192.30.252.0/22"]  # type: ignore[arg-type]
        assert session.urls == [allowlist.GITHUB_META_URL]

    async def test_http_error_degrades_to_empty(self):
        session = FakeSession(exc=aiohttp.ClientConnectionError("unreachable"))
        assert await fetch_github_ranges(session) == []  # type: ignore[arg-type]

    async def test_timeout_degrades_to_empty(self):
        session = FakeSession(exc=TimeoutError())
        assert await fetch_github_ranges(session) == []  # type: ignore[arg-type]

    async def test_malformed_json_degrades_to_empty(self):
        session = FakeSession(payload=ValueError("Expecting value"))
        assert await fetch_github_ranges(session) == []  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Domain resolution
# ---------------------------------------------------------------------------


class TestResolveDomain:
    async def test_a_records_become_host_entries(self, fake_resolver: FakeResolver):
        entries = await resolve_domain(fake_resolver, "registry.npmjs.org")  # type: ignore[arg-type]
        assert entries == ["104.16.1.34/32", "104.16.2.34/32"]
        assert fake_resolver.queries == [("registry.npmjs.org", socket.AF_INET)]

    async def test_lookup_failure_is_empty(self, fake_resolver: FakeResolver):
        assert await resolve_domain(fake_resolver, "nonexistent.invalid") == []  # type: ignore[arg-type]


class TestCollectAllowlist:
    async def test_failing_domain_does_not_block_others(self, fake_resolver: FakeResolver):
        entries = await collect_allowlist(
            ["api.anthropic.com", "nonexistent.invalid", "registry.npmjs.org"]
        )
        assert entries == ["160.79.104.10/32", "104.16.1.34/32", "104.16.2.34/32"]
        assert fake_resolver.closed

    async def test_duplicates_removed_in_first_seen_order(self, fake_resolver: FakeResolver):
        entries = await collect_allowlist(["dup.example", "registry.npmjs.org"])
        assert entries == ["104.16.1.34/32", "104.16.2.34/32"]

    async def test_github_ranges_fetched_when_listed(self, fake_resolver: FakeResolver, monkeypatch):
        async def fake_fetch(session):
            return ["140.82.112.0/20"]

        monkeypatch.setattr(allowlist, "fetch_github_ranges", fake_fetch)
        fake_resolver.answers["api.github.com"] = ["140.82.112.5"]

        entries = await collect_allowlist(["api.anthropic.com", "api.github.com"])
        assert entries == ["140.82.112.0/20", "160.79.104.10/32", "140.82.112.5/32"]

    async def test_github_ranges_not_fetched_otherwise(self, fake_resolver: FakeResolver, monkeypatch):
        async def fail_fetch(session):
            raise AssertionError("GitHub ranges should not be fetched")

        monkeypatch.setattr(allowlist, "fetch_github_ranges", fail_fetch)
        assert await collect_allowlist(["api.anthropic.com"]) == ["160.79.104.10/32"]

    async def test_all_failures_yield_empty(self, fake_resolver: FakeResolver):
        assert await collect_allowlist(["a.invalid", "b.invalid"]) == []

    async def test_no_domains(self, fake_resolver: FakeResolver):
        assert await collect_allowlist([]) == []


class TestMalformedDomains:
    """Names the system resolver refuses to encode, through the real ThreadedResolver."""

    @pytest.mark.parametrize("domain", ["a..example.com", "a" * 64 + ".example.com"])
    async def test_unencodable_name_is_empty(self, domain: str):
        resolver = aiohttp.ThreadedResolver()
        try:
            assert await resolve_domain(resolver, domain) == []
        finally:
            await resolver.close()

    async def test_unencodable_name_does_not_block_others(self):
        assert await collect_allowlist(["a..example.com", "localhost"]) == ["127.0.0.1/32"]


# ---------------------------------------------------------------------------
# Allowlist file
# ---------------------------------------------------------------------------


class TestAllowlistFile:
    def test_one_entry_per_line(self, tmp_path: Path):
        with AllowlistFile(["1.2.3.4/32", "10.0.0.0/8"], directory=tmp_path) as handle:
            assert handle.path.read_text() == "1.2.3.4/32\n10.0.0.0/8\n"

    def test_empty_allowlist_is_empty_file(self, tmp_path: Path):
        with AllowlistFile([], directory=tmp_path) as handle:
            assert handle.path.read_text() == ""

    def test_file_deleted_on_close(self, tmp_path: Path):
        handle = AllowlistFile(["1.2.3.4/32"], directory=tmp_path)
        path = handle.path
        assert path.exists()
        handle.close()
        assert handle.closed
        assert not path.exists()

    def test_close_is_idempotent(self, tmp_path: Path):
        handle = AllowlistFile([], directory=tmp_path)
        handle.close()
        handle.close()
        assert handle.closed

    def test_deleted_when_block_raises(self, tmp_path: Path):
        with pytest.raises(RuntimeError):
            with AllowlistFile(["1.2.3.4/32"], directory=tmp_path) as handle:
                path = handle.path
                raise RuntimeError("boom")
        assert not path.exists()

    def test_unique_per_handle(self, tmp_path: Path):
        with AllowlistFile([], directory=tmp_path) as a, AllowlistFile([], directory=tmp_path) as b:
            assert a.path != b.path


class TestResolveAllowlist:
    def test_writes_resolved_entries(self, fake_resolver: FakeResolver, tmp_path: Path):
        with resolve_allowlist(["api.anthropic.com", "gone.invalid"], directory=tmp_path) as handle:
            assert handle.entries == ("160.79.104.10/32",)
            assert handle.path.read_text() == "160.79.104.10/32\n"
            assert handle.path.parent == tmp_path

    def test_empty_result_still_produces_file(self, fake_resolver: FakeResolver, tmp_path: Path):
        with resolve_allowlist(["gone.invalid"], directory=tmp_path) as handle:
            assert handle.path.exists()
            assert handle.entries == ()
