"""
Default command implementation.

Shows or sets the user default version of a toolchain.
"""

import logging

from toolpin.cli.utils import parse_spec, safe_print
from toolpin.distro.kinds import ToolchainKind

logger = logging.getLogger(__name__)


def run(args, session) -> int:
    """
    Run the default command.

    Without a version, prints the current default (exit 1 when unset).
    With one, resolves it and records it as the default; nothing is fetched.
    """
    kind = ToolchainKind.parse(args.kind)

    if not args.spec:
        version = session.user_version(kind)
        if version is None:
            logger.error(f"No default {kind} version is set")
            return 1
        safe_print(str(version))
        return 0

    version = session.set_default(kind, parse_spec(args.spec))
    if not session.catalog.contains(kind, version):
        logger.info(f"{kind} v{version} is not installed yet; it will be fetched on first use")
    safe_print(f"✓ Default {kind} set to v{version}")
    return 0
