"""
toolpin CLI argument parser.

This module implements the command-line interface for toolpin using argparse.
"""

import argparse
import importlib
import logging
import sys
from typing import List, Optional

from toolpin import __version__
from toolpin.core.exceptions import EXIT_FAILURE, EXIT_INTERRUPTED, ToolpinError
from toolpin.distro.kinds import ToolchainKind

logger = logging.getLogger(__name__)

KIND_CHOICES = [kind.value for kind in ToolchainKind]


class CLI:
    """toolpin command-line interface."""

    # Command name -> module exposing run(args, session)
    COMMANDS = {
        "fetch": "toolpin.cli.commands.fetch",
        "install": "toolpin.cli.commands.install",
        "default": "toolpin.cli.commands.default",
        "pin": "toolpin.cli.commands.pin",
        "current": "toolpin.cli.commands.current",
        "list": "toolpin.cli.commands.list",
        "uninstall": "toolpin.cli.commands.uninstall",
    }

    def __init__(self, session_factory=None):
        """
        Initialize CLI with argument parser.

        Args:
            session_factory: Callable returning a Session (default: Session())
        """
        self.parser = self._create_parser()
        self._session_factory = session_factory

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="toolpin",
            description="toolpin - per-project Node.js and Yarn versions",
            epilog='Use "toolpin COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"toolpin {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_fetch_command(subparsers)
        self._add_install_command(subparsers)
        self._add_default_command(subparsers)
        self._add_pin_command(subparsers)
        self._add_current_command(subparsers)
        self._add_list_command(subparsers)
        self._add_uninstall_command(subparsers)

        return parser

    @staticmethod
    def _add_kind_argument(parser, optional: bool = False):
        if optional:
            parser.add_argument(
                "kind",
                nargs="?",
                choices=KIND_CHOICES,
                help="Toolchain (node|yarn); all when omitted",
            )
        else:
            parser.add_argument("kind", choices=KIND_CHOICES, help="Toolchain (node|yarn)")

    def _add_fetch_command(self, subparsers):
        """Add 'fetch' subcommand."""
        parser = subparsers.add_parser(
            "fetch",
            help="Download and install a version without activating it",
            description="Resolve a version requirement and install it into the toolpin home",
        )
        self._add_kind_argument(parser)
        parser.add_argument(
            "spec", metavar="VERSION", help="Exact version or npm range (e.g. 10.1.0, ^8, latest)"
        )

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Fetch a version and make it the user default",
            description="Fetch a version and make it the default outside pinned projects",
        )
        self._add_kind_argument(parser)
        parser.add_argument("spec", metavar="VERSION", help="Exact version or npm range")

    def _add_default_command(self, subparsers):
        """Add 'default' subcommand."""
        parser = subparsers.add_parser(
            "default",
            help="Show or set the user default version",
            description="Show the user default version, or set it without fetching",
        )
        self._add_kind_argument(parser)
        parser.add_argument(
            "spec", metavar="VERSION", nargs="?", help="New default (omit to show)"
        )

    def _add_pin_command(self, subparsers):
        """Add 'pin' subcommand."""
        parser = subparsers.add_parser(
            "pin",
            help="Pin a version in the current project",
            description="Resolve a version and record it in package.json's toolchain section",
        )
        self._add_kind_argument(parser)
        parser.add_argument("spec", metavar="VERSION", help="Exact version or npm range")

    def _add_current_command(self, subparsers):
        """Add 'current' subcommand."""
        parser = subparsers.add_parser(
            "current",
            help="Show the active version",
            description="Show the version active here: the project pin, else the user default",
        )
        self._add_kind_argument(parser, optional=True)

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        parser = subparsers.add_parser(
            "list",
            help="List installed versions",
            description="List installed versions and mark the user default",
        )
        self._add_kind_argument(parser, optional=True)

    def _add_uninstall_command(self, subparsers):
        """Add 'uninstall' subcommand."""
        parser = subparsers.add_parser(
            "uninstall",
            help="Remove an installed version",
            description="Remove an installed version from the toolpin home",
        )
        self._add_kind_argument(parser)
        parser.add_argument("version", metavar="VERSION", help="Exact version to remove")

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return EXIT_FAILURE

        return self._dispatch_command(parsed_args)

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _create_session(self):
        if self._session_factory is not None:
            return self._session_factory()
        from toolpin.session import Session

        return Session()

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Typed toolpin errors become their exit code with a one-line message;
        anything else exits with 1.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        from toolpin.session import ActivityKind

        module_name = self.COMMANDS.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return EXIT_FAILURE

        module = importlib.import_module(module_name)
        activity = ActivityKind(args.command)
        session = None

        try:
            session = self._create_session()
            session.start(activity)
            exit_code = module.run(args, session)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            exit_code = EXIT_INTERRUPTED
        except ToolpinError as e:
            logger.error(f"Error: {e}")
            if session is not None:
                session.error(activity, e)
            exit_code = e.exit_code
        except Exception as e:
            logger.error(f"Error: {e}")
            if args.verbose:
                import traceback

                traceback.print_exc()
            exit_code = EXIT_FAILURE

        if session is not None:
            session.end(activity, exit_code)
        return exit_code


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()
