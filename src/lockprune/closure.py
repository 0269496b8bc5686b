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

r"""Transitive closure over a dependency graph.

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Root                │ A workspace you want to build. Everything it   │
    │                     │ needs must end up in the pruned lockfile.      │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Closure             │ Every package reachable from the roots, i.e.   │
    │                     │ everything that ends up installed.             │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Kind filter         │ Which edges to walk. "production" skips dev    │
    │                     │ dependencies. Peers are always walked because  │
    │                     │ a package is broken without them.             │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Provenance          │ For each package, the edges that pulled it in. │
    └─────────────────────┴────────────────────────────────────────────────┘

The walk is breadth-first over ``(package, placement)`` states. An edge
is only followed from the placement it was resolved in, which keeps npm
nesting exact: ``b`` under ``node_modules/a`` may resolve ``c``
differently from a hoisted ``b``. A visited set guarantees termination
on cycles.

Usage::

    from lockprune.closure import closure
    from lockprune.graph import build_graph

    result = closure(build_graph(model), ['web'], KindFilter.PRODUCTION)
    sorted(result.packages)
    # → [PackageId('next', '13.4.0'), PackageId('react', '18.2.0'), ...]
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from lockprune._types import DependencyEdge, KindFilter, PackageId
from lockprune.errors import UnknownRoot
from lockprune.graph import DependencyGraph
from lockprune.logging import get_logger

__all__ = [
    'ClosureResult',
    'ResolvedDependency',
    'closure',
    'closure_from_states',
    'resolve_workspace_dependencies',
]

logger = get_logger(__name__)

# A package at one of its placements.
State = tuple[PackageId, str]


@dataclass(frozen=True)
class ClosureResult:
    """The set of packages reachable from a root set.

    Attributes:
        roots: Workspace nodes the walk started from.
        packages: Every reached node, roots included.
        placements: Reached placements per node.
        provenance: For each reached node, the edges that reached it,
            sorted by source name, source version, dependency name.
        kinds: The filter the walk used.
    """

    roots: tuple[PackageId, ...]
    packages: frozenset[PackageId]
    placements: Mapping[PackageId, frozenset[str]] = field(default_factory=dict)
    provenance: Mapping[PackageId, tuple[DependencyEdge, ...]] = field(default_factory=dict)
    kinds: KindFilter = KindFilter.ALL

    def __contains__(self, package_id: object) -> bool:
        """Whether *package_id* was reached."""
        return package_id in self.packages

    def __len__(self) -> int:
        """Number of reached packages."""
        return len(self.packages)

    def __iter__(self) -> Iterator[PackageId]:
        """Iterate over reached packages in lexical order."""
        return iter(sorted(self.packages))

    def states(self) -> frozenset[State]:
        """Every reached ``(package, placement)`` pair."""
        return frozenset((pid, path) for pid, paths in self.placements.items() for path in paths)

    def merge(self, other: ClosureResult) -> ClosureResult:
        """Union of two results over the same graph, keeping this one's roots."""
        placements = {pid: set(paths) for pid, paths in self.placements.items()}
        for pid, paths in other.placements.items():
            placements.setdefault(pid, set()).update(paths)
        provenance = {pid: set(edges) for pid, edges in self.provenance.items()}
        for pid, edges in other.provenance.items():
            provenance.setdefault(pid, set()).update(edges)
        return ClosureResult(
            roots=self.roots,
            packages=self.packages | other.packages,
            placements={pid: frozenset(placements[pid]) for pid in sorted(placements)},
            provenance={pid: tuple(sorted(provenance[pid], key=DependencyEdge.sort_key)) for pid in sorted(provenance)},
            kinds=self.kinds,
        )


@dataclass(frozen=True)
class ResolvedDependency:
    """One package reported by :func:`resolve_workspace_dependencies`.

    Attributes:
        name: Package name, or the requested name when not found.
        key: The placement key (npm path, pnpm dependency path, yarn
            block key).
        version: Resolved version, or the requested range when not found.
        found: Whether the lockfile had a resolution for it.
    """

    name: str
    key: str
    version: str
    found: bool = True


def closure(
    graph: DependencyGraph,
    roots: Iterable[str],
    kinds: KindFilter | str = KindFilter.ALL,
) -> ClosureResult:
    """Compute the transitive closure of the workspaces in *roots*.

    Args:
        graph: The dependency graph.
        roots: Workspace names (or workspace paths).
        kinds: Edge kinds to follow; peer edges are followed regardless.

    Returns:
        The reached packages with placements and provenance.

    Raises:
        UnknownRoot: If a root is not a declared workspace.
    """
    model = graph.model
    root_ids: list[PackageId] = []
    states: list[State] = []
    for name in roots:
        ws = model.workspace(name)
        if ws is None:
            raise UnknownRoot(name, model.workspaces)
        if ws.package not in root_ids:
            root_ids.append(ws.package)
        states.append((ws.package, ws.path))
    result = closure_from_states(graph, states, kinds, roots=root_ids)
    logger.debug(
        'closure_computed',
        roots=[str(r) for r in result.roots],
        kinds=sorted(k.value for k in result.kinds),
        packages=len(result),
    )
    return result


def closure_from_states(
    graph: DependencyGraph,
    states: Iterable[State],
    kinds: KindFilter | str = KindFilter.ALL,
    *,
    roots: Iterable[PackageId] = (),
) -> ClosureResult:
    """Breadth-first closure from explicit ``(package, placement)`` states.

    Args:
        graph: The dependency graph.
        states: Starting states; each package must be a graph node.
        kinds: Edge kinds to follow; peer edges are followed regardless.
        roots: Nodes to report as the result's roots.

    Returns:
        The reached packages with placements and provenance.
    """
    kind_filter = KindFilter.parse(kinds)
    visited: set[State] = set()
    provenance: dict[PackageId, set[DependencyEdge]] = {}
    queue: deque[State] = deque(sorted(set(states)))

    while queue:
        state = queue.popleft()
        if state in visited:
            continue
        visited.add(state)
        package_id, location = state
        for edge in graph.out_edges(package_id):
            if edge.target is None or edge.via != location or not kind_filter.follows(edge.kind):
                continue
            provenance.setdefault(edge.target, set()).add(edge)
            next_state = (edge.target, edge.at)
            if next_state not in visited:
                queue.append(next_state)

    placements: dict[PackageId, set[str]] = {}
    for package_id, location in visited:
        placements.setdefault(package_id, set()).add(location)
    return ClosureResult(
        roots=tuple(roots),
        packages=frozenset(placements),
        placements={pid: frozenset(placements[pid]) for pid in sorted(placements)},
        provenance={pid: tuple(sorted(provenance[pid], key=DependencyEdge.sort_key)) for pid in sorted(provenance)},
        kinds=kind_filter,
    )


def resolve_workspace_dependencies(
    graph: DependencyGraph,
    workspace: str,
    dependencies: Mapping[str, str],
    kinds: KindFilter | str = KindFilter.ALL,
) -> tuple[ClosureResult, list[ResolvedDependency]]:
    """Resolve a name → range map from a workspace and close over it.

    Each name is looked up among the workspace's own declared edges, so
    the resolution is the one the lockfile recorded for that workspace.
    Names without a recorded resolution are reported with
    ``found=False`` instead of failing the whole call.

    Args:
        graph: The dependency graph.
        workspace: Workspace name or path providing the context.
        dependencies: Dependency name → requested range.
        kinds: Edge kinds to follow past the direct dependencies.

    Returns:
        The closure of the found packages (the workspace itself is not
        part of it) and one :class:`ResolvedDependency` per reached
        placement plus one per name that was not found, sorted by name
        and key.

    Raises:
        UnknownRoot: If *workspace* is not declared.
    """
    model = graph.model
    ws = model.workspace(workspace)
    if ws is None:
        raise UnknownRoot(workspace, model.workspaces)

    declared: dict[str, DependencyEdge] = {}
    for edge in graph.out_edges(ws.package):
        if edge.via == ws.path and (edge.name not in declared or declared[edge.name].target is None):
            declared[edge.name] = edge
    states: list[State] = []
    missing: list[ResolvedDependency] = []
    for name in sorted(dependencies):
        chosen = declared.get(name)
        if chosen is None or chosen.target is None:
            missing.append(ResolvedDependency(name=name, key=name, version=dependencies[name], found=False))
            continue
        states.append((chosen.target, chosen.at))

    result = closure_from_states(graph, states, kinds, roots=(ws.package,))
    found = [
        ResolvedDependency(name=pid.name, key=path or str(pid), version=pid.version)
        for pid in sorted(result.packages)
        for path in sorted(result.placements[pid])
    ]
    logger.debug('workspace_dependencies_resolved', workspace=ws.name, found=len(found), missing=len(missing))
    return result, sorted(found + missing, key=lambda r: (r.name, r.key))
