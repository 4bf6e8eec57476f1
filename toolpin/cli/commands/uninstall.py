"""
Uninstall command implementation.

Removes an installed version from the toolpin home.
"""

import logging

from toolpin.cli.utils import parse_exact, safe_print
from toolpin.distro.kinds import ToolchainKind

logger = logging.getLogger(__name__)


def run(args, session) -> int:
    """
    Run the uninstall command.

    Args:
        args: Parsed command-line arguments (kind, version)
        session: Active Session

    Returns:
        0 if removed, 1 if the version was not installed
    """
    kind = ToolchainKind.parse(args.kind)
    version = parse_exact(args.version)

    if not session.uninstall(kind, version):
        logger.error(f"{kind} v{version} is not installed")
        return 1

    if session.catalog.default(kind) == version:
        logger.warning(f"v{version} is still the default {kind}; it will be fetched again on use")
    safe_print(f"✓ Removed {kind} v{version}")
    return 0
