"""
Groupstore Test Suite.

This package contains:
- unit/: Unit tests (schema, migration plan and walker, config, notifiers)
- integration/: Integration tests (real SQLite files in temporary group containers)
"""
