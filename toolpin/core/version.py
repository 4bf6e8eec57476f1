"""
Version and version requirement model.

Versions are ``semantic_version.Version`` instances; requirements follow
npm range semantics through ``semantic_version.NpmSpec``, the same grammar
``package.json`` uses (``^1.2.0``, ``~8.1``, ``10.x``, ``>=6 <8``).

Example:
    >>> spec = VersionSpec.parse("^1.2.0")
    >>> spec.select([parse_version(v) for v in ("1.2.0", "1.3.5", "1.4.0")])
    Version('1.4.0')
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

import semantic_version

from toolpin.core.exceptions import InvalidVersionError

Version = semantic_version.Version

_EXACT_PATTERN = re.compile(
    r"^v?\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)


def parse_version(text: str) -> Version:
    """
    Parse a concrete version, accepting an optional leading ``v``.

    Raises:
        InvalidVersionError: If ``text`` is not a semantic version
    """
    if not isinstance(text, str):
        raise InvalidVersionError(f"Version must be a string, got {type(text).__name__}")
    cleaned = text.strip()
    if cleaned[:1] in ("v", "V"):
        cleaned = cleaned[1:]
    try:
        return Version(cleaned)
    except ValueError as e:
        raise InvalidVersionError(f"Invalid version '{text}': {e}") from e


class SpecMode(Enum):
    """How a requirement is satisfied."""

    EXACT = "exact"
    RANGE = "range"


@dataclass(frozen=True)
class VersionSpec:
    """
    A version requirement: an exact pin or an npm-style range.

    Attributes:
        mode: SpecMode.EXACT or SpecMode.RANGE
        raw: Requirement as written by the user
        version: The pinned version (exact specs only)
    """

    mode: SpecMode
    raw: str
    version: Optional[Version] = None

    @classmethod
    def exact(cls, version) -> "VersionSpec":
        """Build an exact spec from a Version or version string."""
        if not isinstance(version, Version):
            version = parse_version(version)
        return cls(SpecMode.EXACT, str(version), version)

    @classmethod
    def range(cls, expression: str) -> "VersionSpec":
        """
        Build a range spec.

        Raises:
            InvalidVersionError: If the expression is not a valid npm range
        """
        expression = expression.strip()
        if expression.lower() == "latest":
            expression = "*"
        spec = cls(SpecMode.RANGE, expression)
        spec.npm_spec  # validate eagerly
        return spec

    @classmethod
    def parse(cls, text: str) -> "VersionSpec":
        """
        Parse user input: a full ``x.y.z`` string is exact, anything else a range.

        Example:
            >>> VersionSpec.parse("v10.1.0").is_exact
            True
            >>> VersionSpec.parse("10").is_exact
            False
        """
        if not text or not text.strip():
            raise InvalidVersionError("Version requirement cannot be empty")
        if _EXACT_PATTERN.match(text.strip()):
            return cls.exact(text)
        return cls.range(text)

    @property
    def is_exact(self) -> bool:
        return self.mode is SpecMode.EXACT

    @property
    def npm_spec(self) -> semantic_version.NpmSpec:
        expression = f"={self.version}" if self.is_exact else self.raw
        try:
            return semantic_version.NpmSpec(expression)
        except ValueError as e:
            raise InvalidVersionError(
                f"Invalid version requirement '{self.raw}': {e}"
            ) from e

    def matches(self, version: Version) -> bool:
        """Return True if ``version`` satisfies this requirement."""
        if self.is_exact:
            return version == self.version
        return self.npm_spec.match(version)

    def select(self, candidates: Iterable[Version]) -> Optional[Version]:
        """
        Pick the highest candidate satisfying this requirement.

        Returns:
            The maximal matching version, or None when nothing matches
        """
        matching = [v for v in candidates if self.matches(v)]
        return max(matching) if matching else None

    def __str__(self) -> str:
        return self.raw
