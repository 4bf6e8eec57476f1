"""
Pin command implementation.

Records an exact version in the current project's package.json.
"""

from toolpin.cli.utils import parse_spec, safe_print
from toolpin.distro.kinds import ToolchainKind


def run(args, session) -> int:
    kind = ToolchainKind.parse(args.kind)
    version = session.pin(kind, parse_spec(args.spec))
    safe_print(f"✓ Pinned {kind} v{version} in {session.project.manifest_file}")
    return 0
