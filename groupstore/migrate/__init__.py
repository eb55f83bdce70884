"""
Migration module for groupstore.

This module brings an on-disk store from the version it was written at to
the version the running process expects:
- MigrationStep / MigrationPlan: data-described chain of steps
- migrate(): the single generic walker that applies a path of steps

Invariants:
    - The plan covers every adjacent pair of registered versions
    - A walk is all-or-nothing (one transaction)
    - Failure never recreates the file
"""

from .plan import MigrationKind, MigrationPlan, MigrationStep, RecordTransform
from .runner import migrate

__all__ = [
    "MigrationKind",
    "MigrationPlan",
    "MigrationStep",
    "RecordTransform",
    "migrate",
]
