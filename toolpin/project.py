"""
Node projects and their pinned toolchain.

A project is the nearest directory at or above the working directory that
holds a ``package.json``. Its ``toolchain`` section pins exact versions::

    "toolchain": {
      "node": "10.1.0",
      "yarn": "1.7.0"
    }

Reading is side-effect free. Pinning rewrites the manifest in place,
keeping key order, indentation and the trailing newline.
"""

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from toolpin.core.exceptions import InvalidVersionError, ManifestError
from toolpin.core.filesystem import atomic_write
from toolpin.core.version import Version, parse_version
from toolpin.distro.kinds import ToolchainKind

logger = logging.getLogger(__name__)

MANIFEST_NAME = "package.json"
DEFAULT_INDENT = "  "

_INDENT_PATTERN = re.compile(r"^([ \t]+)\S", re.MULTILINE)


def detect_indent(text: str) -> str:
    """
    Detect the indentation unit of a JSON document.

    Returns:
        The whitespace used by the first indented line, or two spaces
    """
    match = _INDENT_PATTERN.search(text)
    if not match:
        return DEFAULT_INDENT
    return match.group(1)


@dataclass
class Manifest:
    """
    Pinned toolchain of a project.

    Attributes:
        node: Pinned Node version, if any
        yarn: Pinned Yarn version, if any
    """

    node: Optional[Version] = None
    yarn: Optional[Version] = None

    @classmethod
    def from_data(cls, data: dict, source: Path) -> "Manifest":
        toolchain = data.get("toolchain")
        if toolchain is None:
            return cls()
        if not isinstance(toolchain, dict):
            raise ManifestError(f"'toolchain' in {source} must be an object")

        def pinned(key: str) -> Optional[Version]:
            raw = toolchain.get(key)
            if raw is None:
                return None
            try:
                return parse_version(raw)
            except InvalidVersionError as e:
                raise ManifestError(f"Invalid toolchain.{key} in {source}: {e}") from e

        return cls(node=pinned("node"), yarn=pinned("yarn"))

    @property
    def has_toolchain(self) -> bool:
        """A manifest counts as pinned when at least Node is pinned."""
        return self.node is not None

    def pinned(self, kind: ToolchainKind) -> Optional[Version]:
        return self.node if kind is ToolchainKind.NODE else self.yarn


class Project:
    """A Node project rooted at a directory holding package.json."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.manifest_file = self.root / MANIFEST_NAME
        self._manifest: Optional[Manifest] = None

    @classmethod
    def for_dir(cls, start: Path) -> Optional["Project"]:
        """
        Find the project containing ``start``.

        Returns:
            The nearest enclosing Project, or None outside any project
        """
        start = Path(start).resolve()
        for directory in (start, *start.parents):
            if (directory / MANIFEST_NAME).is_file():
                logger.debug(f"Found project at {directory}")
                return cls(directory)
        return None

    def _read(self) -> tuple:
        try:
            text = self.manifest_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ManifestError(f"Could not read package info: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ManifestError(f"Invalid JSON in {self.manifest_file}: {e}") from e
        if not isinstance(data, dict):
            raise ManifestError(f"{self.manifest_file} must contain a JSON object")
        return text, data

    @property
    def manifest(self) -> Manifest:
        if self._manifest is None:
            _, data = self._read()
            self._manifest = Manifest.from_data(data, self.manifest_file)
        return self._manifest

    def is_pinned(self) -> bool:
        return self.manifest.has_toolchain

    def pin(self, kind: ToolchainKind, version: Version):
        """
        Write ``version`` into ``toolchain.<kind>`` of package.json.

        Other keys keep their order; the file keeps its indentation.
        """
        text, data = self._read()

        toolchain = data.get("toolchain")
        if toolchain is None:
            toolchain = {}
        elif not isinstance(toolchain, dict):
            raise ManifestError(f"'toolchain' in {self.manifest_file} must be an object")

        toolchain[kind.value] = str(version)
        data["toolchain"] = toolchain

        output = json.dumps(data, indent=detect_indent(text), ensure_ascii=False)
        if text.endswith("\n"):
            output += "\n"

        try:
            atomic_write(self.manifest_file, output)
        except OSError as e:
            raise ManifestError(f"Could not write {self.manifest_file}: {e}") from e

        self._manifest = None
        logger.info(f"Pinned {kind} v{version} in {self.manifest_file}")
