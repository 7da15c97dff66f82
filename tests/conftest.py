"""Shared pytest fixtures for asset versioner tests."""
import hashlib
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

URL_ROOT = "http://localhost/static"

IMAGES = {
    "dir1/abc.jpg": b"\xff\xd8\xff\xe0abc-image-bytes",
    "img1.jpg": b"\xff\xd8\xff\xe0first-image",
    "img2.jpg": b"\xff\xd8\xff\xe0second-image",
    "icons/ok.png": b"\x89PNG\r\n\x1a\nok-icon",
}

SCRIPTS = {
    "dir1/baz.js": b"function baz() {\n  return 42;\n}\n",
    "app.js": b"var app = {};\n",
}

STYLES = {
    "dir1/baz.css": b".baz { color: red; }\n",
    "url-replace.css": (
        b'.foo { background-image: url("versionerUrl(img1.jpg)"); }\n'
        b'.bar { background-image: url("versionerUrl(/img2.jpg)"); }\n'
        b'.foobar { background-image: url("versionerUrl(dir1/abc.jpg)"); }\n'
    ),
    "datauri-replace.css": (
        b'.icon { background-image: url("versionerDataUri(icons/ok.png)"); }\n'
    ),
}


def md5(data: bytes) -> str:
    """Hex digest used in expected keys."""
    return hashlib.md5(data).hexdigest()


def write_tree(root: Path, files: dict[str, bytes]) -> Path:
    """Write ``files`` under ``root`` and return the root."""
    for relative, data in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    return root


@pytest.fixture
def asset_dirs(tmp_path):
    """Create image, javascript and css trees on disk."""
    return {
        "image": write_tree(tmp_path / "images", IMAGES),
        "javascript": write_tree(tmp_path / "javascript", SCRIPTS),
        "style": write_tree(tmp_path / "css", STYLES),
    }


@pytest.fixture
def versioner_options(asset_dirs):
    """Options versioning every test tree from disk."""
    return {
        "url_root": URL_ROOT,
        "types": {
            "image": {"root": str(asset_dirs["image"])},
            "javascript": {"root": str(asset_dirs["javascript"])},
            "style": {"root": str(asset_dirs["style"])},
        },
    }


@pytest.fixture
def cached_options(versioner_options):
    """Same as versioner_options with buffers kept after the build."""
    return {**versioner_options, "cache_files": True}


@pytest.fixture
def recording_log():
    """BuildLog that records every message."""
    log = Mock()
    log.verbose = Mock()
    log.warn = Mock()
    log.error = Mock()
    return log


@pytest.fixture
def fake_lessc():
    """Patch the lessc subprocess.

    The fake process returns ``compiled:`` followed by its stdin, so tests
    can see what was sent to the compiler.
    """
    process = Mock()
    process.returncode = 0
    process.kill = Mock()
    process.wait = AsyncMock(return_value=0)

    async def communicate(stdin: bytes):
        return b"compiled:" + stdin, b""

    process.communicate = AsyncMock(side_effect=communicate)

    with patch(
        "asyncio.create_subprocess_exec", new=AsyncMock(return_value=process)
    ) as create:
        create.process = process
        yield create
