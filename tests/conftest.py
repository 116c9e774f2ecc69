"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules: a fake
mainline repository served through httpx.MockTransport, and isolated
XDG directories.
"""

import hashlib
import logging
from collections import Counter
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
from kmainline.core.config import Settings, save_settings
from kmainline.core.paths import get_config_path

MAINLINE_URL = "https://kernel.test/mainline"
BUILD_513 = "5.13.0-051300.202106272333"

LISTING_HTML = """<!DOCTYPE HTML PUBLIC "-//W3C//DTD HTML 3.2 Final//EN">
<html>
 <head><title>Index of /mainline</title></head>
 <body>
<h1>Index of /mainline</h1>
<table>
 <tr><th><a href="?C=N;O=D">Name</a></th><th><a href="?C=M;O=A">Last modified</a></th></tr>
 <tr><td><a href="/">Parent Directory</a></td><td>&nbsp;</td></tr>
 <tr><td><a href="daily/">daily/</a></td><td align="right">2021-07-12 01:00  </td></tr>
 <tr><td><a href="v5.12.19/">v5.12.19/</a></td><td align="right">2021-07-20 10:11  </td></tr>
 <tr><td><a href="v5.13/">v5.13/</a></td><td align="right">2021-06-27 23:50  </td></tr>
 <tr><td><a href="v5.13-dontuse/">v5.13-dontuse/</a></td><td align="right">2021-06-27 20:00  </td></tr>
 <tr><td><a href="v5.13.1/">v5.13.1/</a></td><td align="right">2021-07-07 12:00  </td></tr>
 <tr><td><a href="v5.14-rc1/">v5.14-rc1/</a></td><td align="right">2021-07-12 01:00  </td></tr>
</table>
</body></html>
"""

SUMMARY_YAML = """\
build-host: kathleen
series: impish
commit: v5.13
commit-label: v5.13
commit-title: Linux 5.13
commit-time: 2021-06-27 15:21:11-07:00
commit-hash: 62fb9874f5da54fdb243003b386128037319b219
start-time: 2021-06-27 23:33:48+00:00
end-time: 2021-06-28 01:02:03+00:00
testsets:
- amd64/build
- arm64/build
- amd64/boot
"""

AMD64_DEBS = [
    f"linux-headers-5.13.0-051300_{BUILD_513}_all.deb",
    f"linux-headers-5.13.0-051300-generic_{BUILD_513}_amd64.deb",
    f"linux-headers-5.13.0-051300-lowlatency_{BUILD_513}_amd64.deb",
    f"linux-image-5.13.0-051300-generic_{BUILD_513}_amd64.deb",
    f"linux-image-unsigned-5.13.0-051300-generic_{BUILD_513}_amd64.deb",
    f"linux-image-unsigned-5.13.0-051300-lowlatency_{BUILD_513}_amd64.deb",
    f"linux-modules-5.13.0-051300-generic_{BUILD_513}_amd64.deb",
    f"linux-modules-5.13.0-051300-lowlatency_{BUILD_513}_amd64.deb",
    f"linux-modules-5.13.0-051300-oddball_{BUILD_513}_amd64.deb",
]


def deb_body(filename: str) -> bytes:
    """Deterministic payload served for a .deb file."""
    return f"!<arch>\ndebian package {filename}\n".encode()


def build_checksums(filenames: list[str]) -> str:
    """Render a CHECKSUMS manifest with SHA-1 and SHA-256 sections."""
    sha1 = [f"{hashlib.sha1(deb_body(n)).hexdigest()}  {n}" for n in filenames]
    sha256 = [f"{hashlib.sha256(deb_body(n)).hexdigest()}  {n}" for n in filenames]
    return "\n".join(["# Checksums-Sha1:", *sha1, "# Checksums-Sha256:", *sha256, ""])


class FakeMainline:
    """In-memory mainline repository served through httpx.MockTransport.

    Attributes:
        routes: URL to (status, body).
        hits: Number of requests per URL.
    """

    url = MAINLINE_URL
    debs = AMD64_DEBS

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes]] = {}
        self.hits: Counter[str] = Counter()

    def add(self, url: str, body: bytes | str, status: int = 200) -> None:
        content = body.encode() if isinstance(body, str) else body
        self.routes[url] = (status, content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.hits[url] += 1
        status, body = self.routes.get(url, (404, b"Not Found"))
        return httpx.Response(status, content=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def deb_url(self, filename: str) -> str:
        return f"{self.url}/v5.13/amd64/{filename}"

    @staticmethod
    def deb_body(filename: str) -> bytes:
        return deb_body(filename)


@pytest.fixture
def listing_html() -> str:
    """Sample Apache-style root listing."""
    return LISTING_HTML


@pytest.fixture
def summary_yaml() -> str:
    """Sample summary.yaml of the 5.13 build."""
    return SUMMARY_YAML


@pytest.fixture
def checksums_text() -> str:
    """Sample amd64 CHECKSUMS manifest of the 5.13 build."""
    return build_checksums(AMD64_DEBS)


@pytest.fixture
def mainline() -> FakeMainline:
    """Fake repository with a complete amd64 build of 5.13.

    arm64 is listed in the summary but its manifest is missing (404).
    """
    server = FakeMainline()
    server.add(MAINLINE_URL, LISTING_HTML)
    server.add(f"{MAINLINE_URL}/v5.13/summary.yaml", SUMMARY_YAML)
    server.add(f"{MAINLINE_URL}/v5.13/amd64/CHECKSUMS", build_checksums(AMD64_DEBS))
    for name in AMD64_DEBS:
        server.add(f"{MAINLINE_URL}/v5.13/amd64/{name}", deb_body(name))
    return server


@pytest.fixture
def isolated_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the XDG config and cache directories into tmp_path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    return tmp_path


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo the root logger changes made by CLI invocations."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def cli_env(isolated_dirs: Path, mainline: FakeMainline):
    """Configure the CLI to use the fake repository.

    Yields:
        The FakeMainline instance the CLI talks to.
    """
    save_settings(Settings(repo_url=mainline.url), get_config_path())
    with patch("kmainline.cli.types.create_client", side_effect=lambda settings: mainline.client()):
        yield mainline
