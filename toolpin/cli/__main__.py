"""
Entry point for running the toolpin CLI as a module.

Usage: python -m toolpin.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()
