"""
Entry point for running toolpin as a module.

Usage: python -m toolpin [command] [options]
"""

from toolpin.cli.parser import main

if __name__ == "__main__":
    main()
