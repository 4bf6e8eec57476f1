"""
Built-in resolution against the public distribution indexes.

- Node: ``{root}index.json``, a list of release objects whose ``version``
  field looks like ``v10.1.0``
- Yarn: the npm registry document for the ``yarn`` package, whose
  ``versions`` mapping is keyed by version string
"""

import logging
from typing import Iterable, List, Optional

import requests
from requests.exceptions import RequestException

from toolpin.core.exceptions import DownloadFailed, InvalidVersionError, ResolutionUnsatisfiable
from toolpin.core.version import Version, VersionSpec, parse_version
from toolpin.distro.kinds import NodeNaming, ToolchainKind
from toolpin.resolve.strategy import Resolution, ResolutionStrategy

logger = logging.getLogger(__name__)

YARN_REGISTRY_URL = "https://registry.npmjs.org/yarn"


def _parse_all(raw_versions: Iterable[str]) -> List[Version]:
    versions = []
    for raw in raw_versions:
        try:
            versions.append(parse_version(raw))
        except InvalidVersionError:
            logger.debug(f"Skipping unparseable index entry: {raw!r}")
    return versions


class PublicIndexStrategy(ResolutionStrategy):
    """Resolve ranges by querying the public version index of each toolchain."""

    name = "index"

    def __init__(self, node_root: Optional[str] = None, timeout: int = 30):
        """
        Args:
            node_root: Node distribution server root (default: nodejs.org)
            timeout: HTTP timeout in seconds
        """
        self.node_root = node_root or NodeNaming.public_root
        if not self.node_root.endswith("/"):
            self.node_root += "/"
        self.timeout = timeout

    def index_url(self, kind: ToolchainKind) -> str:
        if kind is ToolchainKind.NODE:
            return f"{self.node_root}index.json"
        return YARN_REGISTRY_URL

    def available_versions(self, kind: ToolchainKind, requirement: str = "") -> List[Version]:
        """
        Fetch every published version of ``kind``.

        Raises:
            DownloadFailed: If the index cannot be fetched or decoded
        """
        url = self.index_url(kind)
        logger.debug(f"Fetching {kind} version index: {url}")

        try:
            response = requests.get(url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (RequestException, ValueError) as e:
            raise DownloadFailed(
                kind.value,
                requirement,
                e,
                message=f"Could not fetch {kind} version index from {url}: {e}",
            ) from e

        if kind is ToolchainKind.NODE:
            if not isinstance(data, list):
                raise DownloadFailed(
                    kind.value, requirement, message=f"Unexpected index format at {url}"
                )
            raw = [entry.get("version", "") for entry in data if isinstance(entry, dict)]
        else:
            versions = data.get("versions") if isinstance(data, dict) else None
            if not isinstance(versions, dict):
                raise DownloadFailed(
                    kind.value, requirement, message=f"Unexpected registry format at {url}"
                )
            raw = list(versions.keys())

        return _parse_all(raw)

    def resolve(self, kind: ToolchainKind, spec: VersionSpec) -> Resolution:
        version = spec.select(self.available_versions(kind, spec.raw))
        if version is None:
            raise ResolutionUnsatisfiable(kind.value, spec.raw, "public index")

        logger.info(f"Resolved {kind} '{spec}' to {version} from the public index")
        return Resolution(version, source=self.name)
