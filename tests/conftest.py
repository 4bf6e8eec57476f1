"""
Pytest configuration and shared fixtures for toolpin tests.
"""

import io
import json
import stat
import sys
import tarfile
import textwrap
from pathlib import Path

import pytest

from toolpin.core.directory import HomeLayout
from toolpin.core.platform import PlatformInfo, clear_platform_cache
from toolpin.distro.kinds import NodeNaming, YarnNaming


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests that require network access",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --integration flag is provided."""
    if not config.getoption("--integration"):
        skip_integration = pytest.mark.skip(reason="need --integration option to run")
        for item in items:
            if "integration" in item.keywords:
                item.add_marker(skip_integration)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (requires --integration)",
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


LINUX_X64 = PlatformInfo("linux", "x64")


@pytest.fixture(autouse=True)
def _reset_platform_cache():
    clear_platform_cache()
    yield
    clear_platform_cache()


@pytest.fixture
def toolpin_home(tmp_path, monkeypatch) -> Path:
    """Isolated toolpin home directory, exported as TOOLPIN_HOME."""
    home = tmp_path / "toolpin-home"
    home.mkdir()
    monkeypatch.setenv("TOOLPIN_HOME", str(home))
    monkeypatch.delenv("TOOLPIN_NODE_VERSION", raising=False)
    return home


@pytest.fixture
def layout(toolpin_home) -> HomeLayout:
    return HomeLayout(toolpin_home)


@pytest.fixture
def node_naming() -> NodeNaming:
    """Node naming pinned to linux-x64 regardless of the test host."""
    return NodeNaming(LINUX_X64)


@pytest.fixture
def yarn_naming() -> YarnNaming:
    return YarnNaming()


# ============================================================================
# Archive Builders
# ============================================================================


def make_tar_gz(root_dir: str, files: dict) -> bytes:
    """
    Build a .tar.gz in memory with every file under ``root_dir/``.

    Args:
        root_dir: Top-level directory name inside the archive
        files: Mapping of relative path -> text content

    Returns:
        The archive bytes
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        directory = tarfile.TarInfo(root_dir)
        directory.type = tarfile.DIRTYPE
        directory.mode = 0o755
        tar.addfile(directory)
        for relative, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(f"{root_dir}/{relative}")
            info.size = len(data)
            info.mode = 0o755 if relative.startswith("bin/") else 0o644
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def node_archive_bytes(version: str) -> bytes:
    return make_tar_gz(
        f"node-v{version}-linux-x64",
        {"bin/node": f"#!/bin/sh\necho v{version}\n", "README.md": "node\n"},
    )


def yarn_archive_bytes(version: str) -> bytes:
    return make_tar_gz(
        f"yarn-v{version}",
        {"bin/yarn": f"#!/bin/sh\necho {version}\n", "package.json": "{}\n"},
    )


@pytest.fixture
def tar_gz_builder():
    """Expose make_tar_gz to tests."""
    return make_tar_gz


# ============================================================================
# Projects and Plugins
# ============================================================================


def write_package_json(directory: Path, data: dict, indent=2) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    manifest = directory / "package.json"
    manifest.write_text(json.dumps(data, indent=indent) + "\n", encoding="utf-8")
    return manifest


@pytest.fixture
def make_plugin(tmp_path):
    """
    Factory for fake resolver plugins.

    Returns a function taking the plugin's Python body and returning a
    command line that runs it with the current interpreter.
    """

    def factory(body: str, name: str = "plugin.py") -> str:
        script = tmp_path / name
        script.write_text(textwrap.dedent(body), encoding="utf-8")
        script.chmod(script.stat().st_mode | stat.S_IXUSR)
        return f'"{sys.executable}" "{script}"'

    return factory
