"""
toolpin - per-project Node.js and Yarn version manager.

Resolves version requirements, downloads and caches distribution archives,
installs them under ``~/.toolpin/versions`` and pins exact versions in a
project's package.json.
"""

__version__ = "0.1.0"
