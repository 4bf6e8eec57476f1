"""
List command implementation.

Lists installed versions per toolchain, marking the user default.
"""

from toolpin.cli.utils import safe_print
from toolpin.distro.kinds import ToolchainKind


def run(args, session) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments (optional kind)
        session: Active Session

    Returns:
        Exit code (0 for success)
    """
    kinds = [ToolchainKind.parse(args.kind)] if args.kind else list(ToolchainKind)

    for kind in kinds:
        installed = sorted(session.catalog.installed_versions(kind))
        default = session.catalog.default(kind)

        safe_print(f"{kind}:")
        if not installed:
            safe_print("  (none installed)")
        for version in installed:
            marker = " (default)" if version == default else ""
            safe_print(f"  v{version}{marker}")
        if default is not None and default not in installed:
            safe_print(f"  v{default} (default, not installed)")

    return 0
