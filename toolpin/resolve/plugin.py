"""
Resolution through an external plugin command.

A user can hand version resolution for a toolchain kind to any program by
configuring a command line (``node.resolve`` in config.yaml). toolpin runs
it once per resolution:

- the command line is split with shell word-splitting rules
- the request is written to the child's stdin as one JSON document,
  then stdin is closed; plugins are free to ignore it
- stdout must hold exactly one JSON document::

      {"version": "10.1.0",
       "url": "https://mirror.example.com/node-v10.1.0-linux-x64.tar.gz",
       "sha256": "<64 hex chars>"}

  where only ``version`` is required
- stderr is never parsed; it is passed on as diagnostics

The child is untrusted: every field is validated before use. A child that
cannot be started, times out, or exits non-zero raises PluginSpawnFailed;
one that exits cleanly with unusable output raises PluginProtocolViolation.
"""

import json
import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from typing import Optional

from toolpin.core.exceptions import (
    InvalidVersionError,
    PluginProtocolViolation,
    PluginSpawnFailed,
)
from toolpin.core.verification import is_sha256
from toolpin.core.version import Version, VersionSpec, parse_version
from toolpin.distro.kinds import ToolchainKind
from toolpin.resolve.strategy import Resolution, ResolutionStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolutionRequest:
    """What the plugin is asked to resolve."""

    kind: ToolchainKind
    spec: VersionSpec

    def to_json(self) -> str:
        return json.dumps({"kind": self.kind.value, "requirement": self.spec.raw})


@dataclass(frozen=True)
class ResolutionResponse:
    """A validated plugin answer."""

    version: Version
    url: Optional[str] = None
    sha256: Optional[str] = None
    # Exactly what the plugin printed, for diagnostics
    raw_output: str = field(default="", compare=False, repr=False)
    stderr: str = field(default="", compare=False, repr=False)


def parse_response(raw_output: str, command: str = "", stderr: str = "") -> ResolutionResponse:
    """
    Decode and validate a plugin's stdout.

    Raises:
        PluginProtocolViolation: If the output is not a valid response document
    """

    def violation(reason: str) -> PluginProtocolViolation:
        return PluginProtocolViolation(
            f"Plugin '{command}' returned an invalid response: {reason}",
            raw_output=raw_output,
            command=command,
            stderr=stderr,
        )

    if not raw_output.strip():
        raise violation("no output")

    try:
        data = json.loads(raw_output)
    except json.JSONDecodeError as e:
        raise violation(f"not JSON ({e})") from e

    if not isinstance(data, dict):
        raise violation("expected a JSON object")

    raw_version = data.get("version")
    if not isinstance(raw_version, str):
        raise violation("missing string field 'version'")
    try:
        version = parse_version(raw_version)
    except InvalidVersionError as e:
        raise violation(str(e)) from e

    url = data.get("url")
    if url is not None:
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            raise violation("'url' must be an http(s) URL")

    sha256 = data.get("sha256")
    if sha256 is not None:
        if not isinstance(sha256, str) or not is_sha256(sha256):
            raise violation("'sha256' must be 64 hexadecimal characters")
        sha256 = sha256.lower()

    return ResolutionResponse(
        version=version, url=url, sha256=sha256, raw_output=raw_output, stderr=stderr
    )


def resolve_via_plugin(
    command_line: str,
    request: ResolutionRequest,
    timeout: Optional[float] = None,
) -> ResolutionResponse:
    """
    Run a plugin command and return its validated answer.

    Args:
        command_line: Configured command line
        request: Resolution request, sent on stdin
        timeout: Seconds to wait before killing the child (default: no limit)

    Returns:
        The plugin's ResolutionResponse

    Raises:
        PluginSpawnFailed: If the command cannot run, times out, or exits non-zero
        PluginProtocolViolation: If stdout is not a valid response
    """
    try:
        argv = shlex.split(command_line)
    except ValueError as e:
        raise PluginSpawnFailed(
            f"Cannot parse plugin command '{command_line}': {e}", command=command_line
        ) from e

    if not argv:
        raise PluginSpawnFailed("Plugin command is empty", command=command_line)

    logger.debug(f"Running resolver plugin: {argv}")

    try:
        result = subprocess.run(
            argv,
            input=request.to_json(),
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise PluginSpawnFailed(
            f"Plugin '{command_line}' did not finish within {timeout}s",
            command=command_line,
            stderr=_decode(e.stderr),
        ) from e
    except OSError as e:
        raise PluginSpawnFailed(
            f"Could not start plugin '{command_line}': {e}", command=command_line
        ) from e

    stderr = result.stderr or ""
    for line in stderr.splitlines():
        logger.info(f"[plugin] {line}")

    if result.returncode != 0:
        raise PluginSpawnFailed(
            f"Plugin '{command_line}' exited with code {result.returncode}",
            command=command_line,
            stderr=stderr,
            returncode=result.returncode,
        )

    return parse_response(result.stdout or "", command=command_line, stderr=stderr)


def _decode(stream) -> str:
    if stream is None:
        return ""
    if isinstance(stream, bytes):
        return stream.decode("utf-8", errors="replace")
    return stream


class PluginStrategy(ResolutionStrategy):
    """Resolve ranges by delegating to a configured plugin command."""

    name = "plugin"

    def __init__(self, command_line: str, timeout: Optional[float] = None):
        self.command_line = command_line
        self.timeout = timeout

    def resolve(self, kind: ToolchainKind, spec: VersionSpec) -> Resolution:
        response = resolve_via_plugin(
            self.command_line, ResolutionRequest(kind, spec), timeout=self.timeout
        )

        if not spec.matches(response.version):
            raise PluginProtocolViolation(
                f"Plugin '{self.command_line}' answered {response.version}, "
                f"which does not satisfy '{spec}'",
                raw_output=response.raw_output,
                command=self.command_line,
                stderr=response.stderr,
            )

        logger.info(f"Plugin resolved {kind} '{spec}' to {response.version}")
        return Resolution(
            response.version, url=response.url, sha256=response.sha256, source=self.name
        )
