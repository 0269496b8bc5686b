# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

r"""Dialect-independent lockfile model.

This module must have **zero** imports from other ``lockprune``
subpackages to avoid circular-import chains.  Everything here is a
frozen dataclass or enum, apart from :class:`LockfileModel`, which is a
plain container built once per call.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ PackageId           │ "which package, which exact version". The      │
    │                     │ graph node key.                                │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Placement           │ Where a copy of the package sits on disk, e.g. │
    │                     │ node_modules/a/node_modules/b. npm may place   │
    │                     │ the same version in several spots.             │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ DependencyEdge      │ "A declared B with range ^1.0 and the lockfile │
    │                     │ says that meant b@1.2.3 over there."           │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Workspace           │ A package that lives in the repo itself; the   │
    │                     │ roots of every closure.                        │
    └─────────────────────┴────────────────────────────────────────────────┘
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

__all__ = [
    'DepKind',
    'DependencyEdge',
    'KindFilter',
    'LockPackage',
    'LockfileModel',
    'PackageId',
    'Placement',
    'Workspace',
]


class DepKind(Enum):
    """How a dependent declared a dependency."""

    RUNTIME = 'runtime'
    DEV = 'dev'
    PEER = 'peer'
    OPTIONAL = 'optional'


# Edge kinds that must have a recorded resolution.
REQUIRED_KINDS: frozenset[DepKind] = frozenset({DepKind.RUNTIME, DepKind.DEV})


@dataclass(frozen=True, order=True)
class PackageId:
    """A ``(name, resolved version)`` pair, the graph node key.

    Ordering is lexical by name, then version, which is what gives
    closure provenance and rendered documents a stable order.
    """

    name: str
    version: str

    def __str__(self) -> str:
        """Return ``name@version``."""
        return f'{self.name}@{self.version}'


@dataclass(frozen=True)
class Placement:
    """One physical position of a package in a dialect's install layout.

    Attributes:
        path: The dialect's key for this position (an npm
            ``node_modules/...`` path, or ``""`` for a workspace root).
        fields: Raw per-position fields the dialect records there and
            that the model does not interpret (``dev``, ``license``,
            ``engines``, ...). Kept so render can reproduce them.
    """

    path: str
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DependencyEdge:
    """A declared dependency and the node the lockfile resolved it to.

    Attributes:
        source: The dependent node.
        name: The key the dependent declared the dependency under. May
            be an alias, so it can differ from ``target.name``.
        range: The declared version range.
        kind: Runtime, dev, peer or optional.
        target: The resolved node, or ``None`` when the range is
            unresolved (legal only for optional and peer edges).
        via: Placement of the dependent in which the resolution
            happened. Empty for dialects without placements.
        at: Placement of the target the resolution landed on.
    """

    source: PackageId
    name: str
    range: str
    kind: DepKind
    target: PackageId | None = None
    via: str = ''
    at: str = ''

    @property
    def resolved(self) -> bool:
        """``True`` if the edge points at a concrete node."""
        return self.target is not None

    def sort_key(self) -> tuple[str, str, str, str, str]:
        """Lexical key: source name, source version, dependency name."""
        return (self.source.name, self.source.version, self.name, self.kind.value, self.via)


@dataclass(frozen=True)
class LockPackage:
    """A single resolved package record.

    Attributes:
        id: Node key.
        integrity: Integrity hash (``sha512-...``), empty if the dialect
            did not record one.
        resolved: Tarball URL, registry locator or link target.
        placements: Physical positions, sorted by path.
        dependencies: Declared dependency edges originating here.
        workspace: Workspace path if this node is a workspace member.
        metadata: Dialect-specific fields that apply to the record as a
            whole rather than to one placement.
    """

    id: PackageId
    integrity: str = ''
    resolved: str = ''
    placements: tuple[Placement, ...] = ()
    dependencies: tuple[DependencyEdge, ...] = ()
    workspace: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        """Package name."""
        return self.id.name

    @property
    def version(self) -> str:
        """Resolved version."""
        return self.id.version

    @property
    def is_workspace(self) -> bool:
        """``True`` for workspace members (including the repo root)."""
        return self.workspace is not None

    def placement(self, path: str) -> Placement | None:
        """Return the placement at *path*, if any."""
        for placement in self.placements:
            if placement.path == path:
                return placement
        return None

    def placement_paths(self) -> frozenset[str]:
        """Paths of every placement."""
        return frozenset(p.path for p in self.placements)


@dataclass(frozen=True)
class Workspace:
    """A workspace declaration.

    Attributes:
        name: Workspace package name (pnpm has none, so its importer
            path is used).
        path: Directory relative to the repo root (``""`` or ``"."``
            for the root).
        package: The workspace's node in the graph.
        ranges: Direct dependency name → declared range, independent of
            what the lockfile resolved them to.
    """

    name: str
    path: str
    package: PackageId
    ranges: Mapping[str, str] = field(default_factory=dict)


@dataclass
class LockfileModel:
    """A parsed lockfile.

    Attributes:
        dialect: Name of the format adapter that produced the model.
        packages: Node key → record.
        workspaces: Workspace name → declaration.
        metadata: Document-level fields (``lockfileVersion`` etc.).
    """

    dialect: str
    packages: dict[PackageId, LockPackage] = field(default_factory=dict)
    workspaces: dict[str, Workspace] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def package(self, package_id: PackageId) -> LockPackage | None:
        """Return the record for *package_id*, if present."""
        return self.packages.get(package_id)

    def workspace(self, name_or_path: str) -> Workspace | None:
        """Look up a workspace by name, falling back to its path."""
        found = self.workspaces.get(name_or_path)
        if found is not None:
            return found
        wanted = _normalize_workspace_path(name_or_path)
        for ws in self.workspaces.values():
            if _normalize_workspace_path(ws.path) == wanted:
                return ws
        return None

    def edges(self) -> Iterator[DependencyEdge]:
        """Iterate over every declared edge in node order."""
        for package_id in sorted(self.packages):
            yield from self.packages[package_id].dependencies

    def find(self, name: str) -> list[LockPackage]:
        """Return every record named *name*, sorted by version."""
        return sorted(
            (pkg for pkg in self.packages.values() if pkg.name == name),
            key=lambda pkg: pkg.version,
        )


def _normalize_workspace_path(path: str) -> str:
    path = path.strip().rstrip('/')
    if path.startswith('./'):
        path = path[2:]
    return '' if path == '.' else path


class KindFilter(frozenset):
    """A set of :class:`DepKind` values followed by the closure.

    Peer edges are always followed regardless of the filter, so the
    filter only decides about runtime, dev and optional edges.
    """

    ALL: KindFilter
    PRODUCTION: KindFilter

    def __repr__(self) -> str:
        """Return ``KindFilter(dev,runtime)``."""
        return f'KindFilter({",".join(sorted(k.value for k in self))})'

    @classmethod
    def of(cls, kinds: Iterable[DepKind]) -> KindFilter:
        """Build a filter from an iterable of kinds."""
        return cls(kinds)

    @classmethod
    def parse(cls, value: str | Iterable[str] | KindFilter) -> KindFilter:
        """Parse ``"all"``, ``"production"`` or a comma list of kinds.

        Raises:
            ValueError: If a kind name is not recognized.
        """
        if isinstance(value, KindFilter):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered == 'all':
                return cls.ALL
            if lowered in ('production', 'prod'):
                return cls.PRODUCTION
            items: Iterable[str] = [part for part in lowered.split(',') if part.strip()]
        else:
            items = value
        kinds: set[DepKind] = set()
        for item in items:
            try:
                kinds.add(DepKind(item.strip().lower()))
            except ValueError:
                valid = ', '.join(k.value for k in DepKind)
                raise ValueError(f'Unknown dependency kind {item!r} (expected one of: {valid})') from None
        return cls(kinds)

    def follows(self, kind: DepKind) -> bool:
        """Whether an edge of *kind* is traversed under this filter."""
        return kind is DepKind.PEER or kind in self


KindFilter.ALL = KindFilter(DepKind)
KindFilter.PRODUCTION = KindFilter({DepKind.RUNTIME, DepKind.OPTIONAL, DepKind.PEER})
