"""
Fetch command implementation.

Resolves a version requirement and installs the version without touching
the user default or the project.
"""

import logging

from toolpin.cli.utils import ProgressLine, parse_spec, safe_print
from toolpin.distro.kinds import ToolchainKind

logger = logging.getLogger(__name__)


def run(args, session) -> int:
    """
    Run the fetch command.

    Args:
        args: Parsed command-line arguments (kind, spec)
        session: Active Session

    Returns:
        Exit code (0 for success)
    """
    kind = ToolchainKind.parse(args.kind)
    spec = parse_spec(args.spec)

    with ProgressLine(f"{kind} {spec}") as progress:
        fetched = session.fetch(kind, spec, progress)

    if fetched.newly_installed:
        safe_print(f"✓ Installed {kind} v{fetched.version} at {fetched.path}")
    else:
        safe_print(f"{kind} v{fetched.version} is already installed")
    return 0
