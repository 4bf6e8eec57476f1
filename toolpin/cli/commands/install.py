"""
Install command implementation.

Fetches a version and makes it the user default.
"""

import logging

from toolpin.cli.utils import ProgressLine, parse_spec, safe_print
from toolpin.distro.kinds import ToolchainKind

logger = logging.getLogger(__name__)


def run(args, session) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments (kind, spec)
        session: Active Session

    Returns:
        Exit code (0 for success)
    """
    kind = ToolchainKind.parse(args.kind)
    spec = parse_spec(args.spec)

    with ProgressLine(f"{kind} {spec}") as progress:
        fetched = session.install(kind, spec, progress)

    safe_print(f"✓ Default {kind} set to v{fetched.version}")
    if session.in_pinned_project():
        pinned = session.project.manifest.pinned(kind)
        if pinned is not None and pinned != fetched.version:
            logger.warning(
                f"This project pins {kind} v{pinned}, which stays active here"
            )
    return 0
