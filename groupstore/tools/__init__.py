"""
Tools module for groupstore.

Command-line tooling:
- store_cli: schema lockfile, plan inspection, store info, migrate, recent
"""

from .store_cli import StoreCLI, build_parser, run

__all__ = ["StoreCLI", "build_parser", "run"]
