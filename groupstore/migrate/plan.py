"""
Data-described migration plan for groupstore.

A migration plan is a table of steps ``(from, to, kind, transforms?)``
between consecutive registered schema versions. The plan is pure data;
runner.migrate() is the one generic walker that interprets it.

Step kinds:
    - automatic: structurally compatible change (new tables, new optional
      columns, new indexes). No record is rewritten.
    - custom: every record of the affected tables is passed through the
      transform for its record type and written back into a rebuilt table.

Invariants:
    - The steps form one unbroken chain over every adjacent pair of
      registered versions: no gaps, no skips, no orphan steps
    - An automatic step never spans a breaking change
    - A transform receives and returns raw record dicts (column -> value);
      returning None drops the record

How to change safely:
    - Never edit a step that has shipped; its output is already on disk
    - Keep transforms deterministic and free of I/O
    - Run `groupstore schema check` after adding a step
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..errors import MigrationPlanError, MissingChainLinkError, UnsupportedFutureVersionError
from ..schema.compat import check_compatibility
from ..schema.registry import VersionRegistry
from ..schema.types import VersionId

logger = logging.getLogger(__name__)

RecordTransform = Callable[[Dict[str, Any]], Optional[Dict[str, Any]]]


class MigrationKind(str, Enum):
    """How a step brings stored data to the next version."""

    AUTOMATIC = "automatic"
    CUSTOM = "custom"


@dataclass(frozen=True, eq=False)
class MigrationStep:
    """One link of the migration chain.

    Attributes:
        source: Version the step starts from
        target: Version the step produces
        kind: automatic or custom
        transforms: Record type name -> transform (custom steps only)
        description: What the step does
    """

    source: VersionId
    target: VersionId
    kind: MigrationKind
    transforms: Mapping[str, RecordTransform] = field(default_factory=dict)
    description: str = ""

    def __post_init__(self) -> None:
        if not self.source < self.target:
            raise ValueError(
                f"Migration step must move forward: {self.source} -> {self.target}"
            )
        if self.kind == MigrationKind.AUTOMATIC and self.transforms:
            raise ValueError(
                f"Automatic step {self.source} -> {self.target} cannot carry transforms"
            )

    @classmethod
    def automatic(
        cls, source: VersionId, target: VersionId, description: str = ""
    ) -> MigrationStep:
        """Create a structural (no-transform) step."""
        return cls(source, target, MigrationKind.AUTOMATIC, {}, description)

    @classmethod
    def custom(
        cls,
        source: VersionId,
        target: VersionId,
        transforms: Optional[Mapping[str, RecordTransform]] = None,
        description: str = "",
    ) -> MigrationStep:
        """Create a step that rewrites records through transforms."""
        return cls(source, target, MigrationKind.CUSTOM, dict(transforms or {}), description)

    def __repr__(self) -> str:
        return f"MigrationStep({self.source} -> {self.target}, {self.kind.value})"


VersionLike = Union[VersionId, str]


def _as_version(value: VersionLike) -> VersionId:
    if isinstance(value, VersionId):
        return value
    return VersionId.parse(value)


class MigrationPlan:
    """Ordered collection of migration steps.

    Example:
        >>> plan = MigrationPlan.from_table([
        ...     ("1.0.0", "1.1.0", "automatic"),
        ...     ("1.1.0", "2.0.0", "custom", {"Item": split_title}),
        ... ])
        >>> plan.path(registry, VersionId(1, 0, 0), VersionId(2, 0, 0))
    """

    def __init__(self, steps: Iterable[MigrationStep] = ()) -> None:
        self._steps: List[MigrationStep] = sorted(steps, key=lambda s: (s.source, s.target))

    @property
    def steps(self) -> tuple[MigrationStep, ...]:
        """All steps, ordered by source version."""
        return tuple(self._steps)

    @classmethod
    def from_table(cls, rows: Iterable[Sequence[Any]]) -> MigrationPlan:
        """Build a plan from ``(from, to, kind[, transforms])`` rows.

        Versions may be VersionId or dotted strings, kind may be a
        MigrationKind or its value.
        """
        steps = []
        for row in rows:
            if len(row) not in (3, 4):
                raise ValueError(f"Migration row must have 3 or 4 columns, got {row!r}")
            source, target, kind = row[0], row[1], row[2]
            transforms = row[3] if len(row) == 4 else None
            steps.append(
                MigrationStep(
                    source=_as_version(source),
                    target=_as_version(target),
                    kind=MigrationKind(kind),
                    transforms=dict(transforms or {}),
                )
            )
        return cls(steps)

    def nodes(self) -> List[VersionId]:
        """Sorted versions referenced by any step."""
        found = set()
        for step in self._steps:
            found.add(step.source)
            found.add(step.target)
        return sorted(found)

    def find_step(self, source: VersionId, target: VersionId) -> Optional[MigrationStep]:
        """Return the step linking ``source`` to ``target``, if any."""
        for step in self._steps:
            if step.source == source and step.target == target:
                return step
        return None

    def validate(self, registry: VersionRegistry) -> List[str]:
        """Check the plan against the registry.

        Returns:
            List of problems (empty when the plan is consistent)
        """
        problems: List[str] = []
        versions = registry.version_ids()
        registered = set(versions)

        seen_pairs = set()
        seen_sources: Dict[VersionId, MigrationStep] = {}
        for step in self._steps:
            pair = (step.source, step.target)
            if pair in seen_pairs:
                problems.append(f"Duplicate step {step.source} -> {step.target}")
                continue
            seen_pairs.add(pair)
            if step.source in seen_sources:
                problems.append(
                    f"Version {step.source} has more than one outgoing step "
                    f"({seen_sources[step.source].target} and {step.target})"
                )
            seen_sources[step.source] = step

            orphan = [v for v in pair if v not in registered]
            if orphan:
                problems.append(
                    f"Orphan step {step.source} -> {step.target}: "
                    f"{', '.join(str(v) for v in orphan)} not registered"
                )
                continue

            expected = registry.next_after(step.source)
            if expected != step.target:
                problems.append(
                    f"Step {step.source} -> {step.target} skips registered version {expected}"
                )
                continue

            old = registry.get(step.source)
            new = registry.get(step.target)
            if step.kind == MigrationKind.AUTOMATIC:
                breaking = [c for c in check_compatibility(old, new) if c.is_breaking]
                for change in breaking:
                    problems.append(
                        f"Automatic step {step.source} -> {step.target} spans a breaking "
                        f"change: {change}"
                    )
            for type_name in step.transforms:
                if old.get_record_type(type_name) is None or new.get_record_type(type_name) is None:
                    problems.append(
                        f"Step {step.source} -> {step.target} transforms unknown record "
                        f"type '{type_name}'"
                    )

        if len(versions) > 1:
            nodes = set(self.nodes())
            for version in versions:
                if version not in nodes:
                    problems.append(f"Orphan version {version}: no step reaches or leaves it")
            for source, target in zip(versions, versions[1:]):
                if self.find_step(source, target) is None:
                    problems.append(f"Gap: no step from {source} to {target}")

        return problems

    def check(self, registry: VersionRegistry) -> None:
        """Validate the plan, raising on any problem.

        Raises:
            MigrationPlanError: If validate() reports problems
        """
        problems = self.validate(registry)
        if problems:
            raise MigrationPlanError(problems)

    def path(
        self,
        registry: VersionRegistry,
        source: VersionId,
        target: VersionId,
    ) -> List[MigrationStep]:
        """Compute the ordered steps that walk ``source`` up to ``target``.

        The walk follows the registry, one adjacent pair at a time, so a
        missing step is detected before any data is touched.

        Raises:
            UnsupportedFutureVersionError: If ``source`` is newer than ``target``
            MissingChainLinkError: For the first adjacent pair without a step
        """
        if source > target:
            raise UnsupportedFutureVersionError(source, target)
        steps: List[MigrationStep] = []
        current = source
        while current < target:
            following = registry.next_after(current)
            if following is None or following > target:
                raise MissingChainLinkError(current, target)
            step = self.find_step(current, following)
            if step is None:
                raise MissingChainLinkError(current, following)
            steps.append(step)
            current = following
        logger.debug(f"Migration path {source} -> {target}: {steps}")
        return steps

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self):
        return iter(self._steps)
