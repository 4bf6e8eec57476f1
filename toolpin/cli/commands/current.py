"""
Current command implementation.

Shows the version active in the working directory: the project pin when
there is one, otherwise the user default.
"""

import logging

from toolpin.cli.utils import ProgressLine, safe_print
from toolpin.distro.kinds import ToolchainKind

logger = logging.getLogger(__name__)


def run(args, session) -> int:
    """
    Run the current command.

    Args:
        args: Parsed command-line arguments (optional kind)
        session: Active Session

    Returns:
        0 if every requested kind has an active version, 1 otherwise
    """
    kinds = [ToolchainKind.parse(args.kind)] if args.kind else list(ToolchainKind)

    missing = False
    for kind in kinds:
        with ProgressLine(f"{kind}") as progress:
            version = session.current(kind, progress)

        if version is None:
            missing = True
            if args.kind:
                logger.error(f"No {kind} version is active here")
            else:
                safe_print(f"{kind}: none")
        elif args.kind:
            safe_print(str(version))
        else:
            safe_print(f"{kind}: v{version}")

    return 1 if missing and args.kind else 0
