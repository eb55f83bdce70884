"""
groupstore - One SQLite store shared by independent processes.

This package coordinates a single embedded database that several processes
open from a shared group directory:
- A primary application and an ingestion extension read and write
- A background renderer only reads, and never migrates
- A versioned schema registry and a migration plan every process agrees on
- A best-effort "data changed" signal after each committed write

Architecture:
    ┌─────────────┐   ┌─────────────┐          ┌──────────────┐
    │ Application │   │  Ingestion  │          │   Renderer   │
    │  (writer)   │   │  (writer)   │          │ (read-only)  │
    └──────┬──────┘   └──────┬──────┘          └──────┬───────┘
           │                 │                        │
           ▼                 ▼                        ▼
    ┌─────────────────────────────┐        ┌─────────────────────┐
    │     WriteAccessManager      │        │ReadOnlyAccessManager│
    │ resolve + migrate + notify  │        │  resolve (no migr.) │
    └──────────────┬──────────────┘        └──────────┬──────────┘
                   │          ┌─────────────┐         │
                   ├─────────▶│  notifier   │─ ─ ─ ─ ▶│ (refresh hint)
                   ▼          └─────────────┘         ▼
              ┌─────────────────────────────────────────────┐
              │   <group directory>/AppData.sqlite (SQLite) │
              └─────────────────────────────────────────────┘

Invariants:
    - The file carries its schema version tag; every process checks it
    - Only writers migrate; a newer file than this build knows is refused
    - No fallback to a private location when the group is unavailable
    - A notification failure never reverts a committed write

How to change safely:
    - Schema changes are new registered versions plus a migration step
    - Shipped versions are never edited or removed
    - Run `groupstore schema check` before every release
"""

from ._version import __version__

__all__ = ["__version__"]
