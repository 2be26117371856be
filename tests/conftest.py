import io
import struct
import zipfile
from pathlib import Path
from typing import Dict, Optional, Union

import platformdirs
import pytest
import requests

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)

_ASYNC_NETWORK_BLOCK_MSG = (
    "Async network access is blocked during tests. Mock aiohttp.ClientSession."
)


def _block_network(*_args, **_kwargs):
    raise RuntimeError(_NETWORK_BLOCK_MSG)


async def _async_block_network(*_args, **_kwargs):
    raise RuntimeError(_ASYNC_NETWORK_BLOCK_MSG)


pytest_plugins = ("pytest_asyncio",)


def pytest_configure(config):
    """Register the markers used across the suite."""
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line(
        "markers", "integration: tests that exercise several components together"
    )


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point HOME, the platformdirs locations and the chromever config module at a
    throwaway directory so no test touches the real user profile.
    """
    base = tmp_path_factory.mktemp("chromever")
    home_dir = base / "home"
    config_dir = base / "config"
    log_dir = base / "log"
    for path in (home_dir, config_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("HOME", str(home_dir))
    monkeypatch.setenv("USERPROFILE", str(home_dir))
    monkeypatch.delenv("CHROMEVER_HOME", raising=False)
    monkeypatch.delenv("CHROMEVER_LOG_LEVEL", raising=False)

    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )

    import chromever.config as chromever_config

    monkeypatch.setattr(chromever_config, "CONFIG_DIR", str(config_dir))
    monkeypatch.setattr(
        chromever_config, "CONFIG_FILE", str(config_dir / "chromever.yaml")
    )
    monkeypatch.setattr(chromever_config, "LOG_DIR", str(log_dir))


def pytest_runtest_setup():
    """Replace the HTTP entry points with blockers so no test reaches the network."""
    requests.get = _block_network
    requests.post = _block_network
    requests.Session.request = _block_network

    import aiohttp

    aiohttp.request = _async_block_network
    aiohttp.ClientSession.request = _async_block_network  # type: ignore[assignment]
    aiohttp.ClientSession.get = _async_block_network  # type: ignore[assignment]


def build_zip(path: Path, entries: Dict[str, Optional[Union[bytes, str]]]) -> Path:
    """
    Write a ZIP archive at `path`.

    `entries` maps member names to contents; a name ending in "/" (or a None
    value) becomes a directory entry.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            if content is None or name.endswith("/"):
                zf.writestr(zipfile.ZipInfo(name if name.endswith("/") else name + "/"), b"")
            else:
                zf.writestr(name, content)
    path.write_bytes(buffer.getvalue())
    return path


CHROME_ARCHIVE_ENTRIES = {
    "chrome-win/": None,
    "chrome-win/chrome.exe": b"MZ fake chrome",
    "chrome-win/locales/en-US.pak": b"pak",
}


@pytest.fixture
def install_root(tmp_path):
    return tmp_path / "root"


@pytest.fixture
def store(install_root):
    from chromever.storage import InstallationStore

    return InstallationStore(install_root)


@pytest.fixture
def chrome_zip_bytes(tmp_path):
    return build_zip(tmp_path / "src" / "chrome.zip", CHROME_ARCHIVE_ENTRIES).read_bytes()


class FakeDownloadClient:
    """
    Stand-in for AsyncDownloadClient that writes a canned archive.

    Every instance records its downloads in the shared `calls` list.
    """

    def __init__(self, payload: bytes, calls: list, error: Optional[Exception] = None):
        self.payload = payload
        self.calls = calls
        self.error = error

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def download_file(self, url, target_path, progress_callback=None):
        self.calls.append((url, Path(target_path)))
        if self.error is not None:
            raise self.error
        Path(target_path).parent.mkdir(parents=True, exist_ok=True)
        Path(target_path).write_bytes(self.payload)
        if progress_callback:
            progress_callback(len(self.payload), len(self.payload))
        return len(self.payload)


@pytest.fixture
def fake_client_factory():
    """
    Build a client factory for Installer.

    Returns:
        callable: make(payload, error=None) -> (factory, calls)
    """

    def _make(payload: bytes, error: Optional[Exception] = None):
        calls: list = []
        return (lambda: FakeDownloadClient(payload, calls, error)), calls

    return _make


@pytest.fixture
def make_zip():
    return build_zip


@pytest.fixture
def chrome_entries():
    return dict(CHROME_ARCHIVE_ENTRIES)


def build_zip_with_corrupt_member(
    path: Path, entries: Dict[str, bytes], corrupt_name: str
) -> Path:
    """
    Write a deflated ZIP whose central directory is intact but whose
    `corrupt_name` member has a damaged compressed stream.

    The first compressed byte is set to 0xFF, which zlib rejects as an
    invalid block type.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    data = bytearray(buffer.getvalue())

    with zipfile.ZipFile(io.BytesIO(bytes(data))) as zf:
        info = zf.getinfo(corrupt_name)
    # Local file header: 30 fixed bytes, then the name and extra fields
    offset = info.header_offset
    name_len, extra_len = struct.unpack("<HH", data[offset + 26 : offset + 30])
    data[offset + 30 + name_len + extra_len] = 0xFF

    path.write_bytes(bytes(data))
    return path


@pytest.fixture
def make_corrupt_zip():
    return build_zip_with_corrupt_member
