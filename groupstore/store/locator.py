"""
Shared directory capability for groupstore.

A group container is a directory that several independent processes are
jointly allowed to read and write, looked up by a stable group identifier.
Provisioning it is the platform's job; this module only resolves it.

Invariants:
    - Resolution either yields an existing directory or None
    - Locators never create a directory; a missing container means the
      sharing relationship is not configured
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol, Union, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class GroupContainerLocator(Protocol):
    """Resolves a group identifier to its shared directory.

    Implementations must be side-effect free and may be called from any
    process. Tests inject StaticGroupLocator.
    """

    def container_directory(self, group_id: str) -> Optional[Path]:
        """Return the shared directory for ``group_id``, or None."""
        ...


def _safe_group_id(group_id: str) -> bool:
    return bool(group_id) and all(c.isalnum() or c in "-_." for c in group_id) and ".." not in group_id


class DirectoryGroupLocator:
    """Group containers laid out as ``<root>/<group_id>``.

    Example:
        >>> locator = DirectoryGroupLocator("/var/lib/groupstore/containers")
        >>> locator.container_directory("group.com.example.shared")
        PosixPath('/var/lib/groupstore/containers/group.com.example.shared')
    """

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def container_directory(self, group_id: str) -> Optional[Path]:
        # Reject ids that would escape the root
        if not _safe_group_id(group_id):
            logger.warning(f"Rejected malformed group id {group_id!r}")
            return None
        candidate = self.root / group_id
        if not candidate.is_dir():
            return None
        return candidate


class StaticGroupLocator:
    """Fixed mapping of group ids to directories."""

    def __init__(self, mapping: Optional[Mapping[str, Union[str, Path]]] = None) -> None:
        self._mapping: Dict[str, Path] = {k: Path(v) for k, v in (mapping or {}).items()}

    def add(self, group_id: str, directory: Union[str, Path]) -> None:
        self._mapping[group_id] = Path(directory)

    def container_directory(self, group_id: str) -> Optional[Path]:
        return self._mapping.get(group_id)
