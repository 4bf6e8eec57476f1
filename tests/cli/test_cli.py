"""
Tests for the toolpin command-line interface.
"""

import json
from unittest.mock import MagicMock

import pytest

from conftest import LINUX_X64, write_package_json
from toolpin.cli.parser import CLI
from toolpin.cli.utils import ProgressLine, parse_exact, parse_spec
from toolpin.core.directory import HomeLayout
from toolpin.core.exceptions import InvalidVersionError, PluginSpawnFailed
from toolpin.core.version import Version
from toolpin.distro.fetcher import ProgressInfo
from toolpin.distro.kinds import ToolchainKind
from toolpin.session import Session


@pytest.fixture(autouse=True)
def _linux_x64(monkeypatch):
    monkeypatch.setattr("toolpin.distro.kinds.detect_platform", lambda: LINUX_X64)


@pytest.fixture
def workdir(tmp_path):
    directory = tmp_path / "work"
    directory.mkdir()
    return directory


@pytest.fixture
def cli(toolpin_home, workdir):
    return CLI(session_factory=lambda: Session(HomeLayout(toolpin_home), cwd=workdir))


class TestParser:
    def test_version_flag(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            CLI().parse_args(["--version"])

        assert exc_info.value.code == 0
        assert "toolpin" in capsys.readouterr().out

    def test_unknown_kind_rejected(self):
        with pytest.raises(SystemExit):
            CLI().parse_args(["fetch", "deno", "1.0.0"])

    def test_optional_kind(self):
        args = CLI().parse_args(["current"])

        assert args.command == "current"
        assert args.kind is None

    def test_no_command_prints_help(self, capsys):
        assert CLI().run([]) == 1
        assert "usage" in capsys.readouterr().out


class TestCommands:
    """End-to-end command runs against an isolated home."""

    def test_default_set_and_show(self, cli, capsys):
        assert cli.run(["default", "node", "10.1.0"]) == 0
        assert cli.run(["default", "node"]) == 0

        assert capsys.readouterr().out.strip().splitlines()[-1] == "10.1.0"

    def test_default_unset(self, cli):
        assert cli.run(["default", "yarn"]) == 1

    def test_current_all(self, cli, capsys):
        cli.run(["default", "node", "8.0.0"])
        capsys.readouterr()

        assert cli.run(["current"]) == 0

        out = capsys.readouterr().out
        assert "node: v8.0.0" in out
        assert "yarn: none" in out

    def test_current_single_kind_missing(self, cli):
        assert cli.run(["current", "yarn"]) == 1

    def test_list(self, cli, toolpin_home, capsys):
        session = Session(HomeLayout(toolpin_home))
        session.catalog.record_installed(ToolchainKind.NODE, Version("10.1.0"))
        session.catalog.record_installed(ToolchainKind.NODE, Version("8.11.2"))
        session.catalog.set_default(ToolchainKind.NODE, Version("10.1.0"))

        assert cli.run(["list", "node"]) == 0

        out = capsys.readouterr().out
        assert "v8.11.2\n" in out
        assert "v10.1.0 (default)" in out

    def test_pin_outside_project_exits_with_configuration_code(self, cli):
        assert cli.run(["pin", "node", "10.1.0"]) == 2

    def test_pin_inside_project(self, toolpin_home, workdir):
        write_package_json(workdir, {"name": "app"})
        cli = CLI(session_factory=lambda: Session(HomeLayout(toolpin_home), cwd=workdir))

        assert cli.run(["pin", "node", "10.1.0"]) == 0

        data = json.loads((workdir / "package.json").read_text())
        assert data["toolchain"] == {"node": "10.1.0"}

    def test_invalid_version_exit_code(self, cli):
        assert cli.run(["default", "node", ">>>"]) == 3

    def test_uninstall_requires_exact_version(self, cli):
        assert cli.run(["uninstall", "node", "^10"]) == 3

    def test_uninstall_not_installed(self, cli):
        assert cli.run(["uninstall", "node", "10.1.0"]) == 1

    def test_plugin_failure_exit_code(self, toolpin_home, workdir, make_plugin):
        command = make_plugin("import sys\nsys.exit(3)\n")
        (toolpin_home / "config.yaml").write_text(f"node:\n  resolve: '{command}'\n")
        cli = CLI(session_factory=lambda: Session(HomeLayout(toolpin_home), cwd=workdir))

        assert cli.run(["fetch", "node", "^10"]) == PluginSpawnFailed.exit_code

    def test_keyboard_interrupt(self, workdir):
        session = MagicMock()
        session.fetch.side_effect = KeyboardInterrupt
        cli = CLI(session_factory=lambda: session)

        assert cli.run(["fetch", "node", "10.1.0"]) == 130
        session.end.assert_called_once()

    def test_unexpected_error(self):
        session = MagicMock()
        session.fetch.side_effect = RuntimeError("boom")

        assert CLI(session_factory=lambda: session).run(["fetch", "node", "10.1.0"]) == 1


class TestUtils:
    def test_parse_spec(self):
        assert parse_spec("10.1.0").is_exact
        assert not parse_spec("^10").is_exact

    def test_parse_exact(self):
        assert parse_exact("v10.1.0") == Version("10.1.0")
        with pytest.raises(InvalidVersionError):
            parse_exact("10")

    def test_progress_line_renders_on_one_line(self):
        stream = MagicMock()

        with ProgressLine("node 10.1.0", stream=stream, enabled=True) as progress:
            progress(ProgressInfo("downloading", 512 * 1024, 1024 * 1024))
            progress(ProgressInfo("unpacking", 10, 0))

        written = "".join(call.args[0] for call in stream.write.call_args_list)
        assert "\rDownloading node 10.1.0:  50.0%" in written
        assert "\n" not in written
        assert written.endswith("\r")

    def test_progress_line_disabled(self):
        stream = MagicMock()

        with ProgressLine("node", stream=stream, enabled=False) as progress:
            progress(ProgressInfo("downloading", 1, 2))

        stream.write.assert_not_called()
