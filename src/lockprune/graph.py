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

r"""Dependency graph over a lockfile model.

Nodes are :class:`~lockprune._types.PackageId` values and edges are the
model's :class:`~lockprune._types.DependencyEdge` records, resolved the
way the lockfile itself recorded them. Nothing here matches version
ranges; a lockfile that names a target it does not contain is corrupt
and is reported as a :class:`~lockprune.errors.DanglingEdge`.

The graph may contain cycles (``a`` peer-depends on ``b`` and ``b`` on
``a`` is common), so nothing downstream may assume a DAG.

Usage::

    from lockprune.graph import build_graph

    graph = build_graph(model)
    graph.successors(PackageId('react-dom', '18.2.0'))
    # → (PackageId('loose-envify', '1.4.0'), PackageId('react', '18.2.0'), ...)
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from lockprune._types import REQUIRED_KINDS, DependencyEdge, LockfileModel, PackageId
from lockprune.errors import DanglingEdge, MalformedDocument
from lockprune.logging import get_logger

__all__ = [
    'DependencyGraph',
    'build_graph',
]

logger = get_logger(__name__)


@dataclass
class DependencyGraph:
    """Read-only adjacency view over a :class:`LockfileModel`.

    Attributes:
        model: The model the graph was built from.
        nodes: Every package in the model.
    """

    model: LockfileModel
    nodes: frozenset[PackageId] = frozenset()
    _out: dict[PackageId, tuple[DependencyEdge, ...]] = field(default_factory=dict, repr=False)
    _in: dict[PackageId, tuple[DependencyEdge, ...]] = field(default_factory=dict, repr=False)

    def __contains__(self, package_id: object) -> bool:
        """Whether *package_id* is a node."""
        return package_id in self.nodes

    def __len__(self) -> int:
        """Number of nodes."""
        return len(self.nodes)

    def __iter__(self) -> Iterator[PackageId]:
        """Iterate over nodes in lexical order."""
        return iter(sorted(self.nodes))

    @property
    def edge_count(self) -> int:
        """Number of edges, resolved or not."""
        return sum(len(edges) for edges in self._out.values())

    def out_edges(self, package_id: PackageId) -> tuple[DependencyEdge, ...]:
        """Edges declared by *package_id*."""
        return self._out.get(package_id, ())

    def in_edges(self, package_id: PackageId) -> tuple[DependencyEdge, ...]:
        """Edges resolved to *package_id*."""
        return self._in.get(package_id, ())

    def successors(self, package_id: PackageId) -> tuple[PackageId, ...]:
        """Distinct resolved targets of *package_id*, sorted."""
        return tuple(sorted({e.target for e in self.out_edges(package_id) if e.target is not None}))

    def predecessors(self, package_id: PackageId) -> tuple[PackageId, ...]:
        """Distinct dependents of *package_id*, sorted."""
        return tuple(sorted({e.source for e in self.in_edges(package_id)}))


def build_graph(model: LockfileModel) -> DependencyGraph:
    """Build the dependency graph of *model*.

    Args:
        model: A parsed lockfile.

    Returns:
        The graph, one node per package and one edge per declared
        dependency.

    Raises:
        DanglingEdge: If an edge resolves to a package the model does
            not contain, or a runtime/dev dependency has no recorded
            resolution at all.
    """
    nodes = frozenset(model.packages)
    out: dict[PackageId, tuple[DependencyEdge, ...]] = {}
    incoming: dict[PackageId, list[DependencyEdge]] = {}

    for package_id in sorted(model.packages):
        pkg = model.packages[package_id]
        if pkg.id != package_id:
            raise MalformedDocument(f'record for {package_id} carries id {pkg.id}', package=str(package_id))
        for edge in pkg.dependencies:
            if edge.source != package_id:
                raise MalformedDocument(
                    f'edge {edge.name!r} is filed under {package_id} but originates at {edge.source}',
                    package=str(package_id),
                )
            if edge.target is None:
                if edge.kind in REQUIRED_KINDS:
                    raise DanglingEdge(package_id, edge.name, None)
                continue
            if edge.target not in nodes:
                raise DanglingEdge(package_id, edge.name, edge.target)
            incoming.setdefault(edge.target, []).append(edge)
        out[package_id] = pkg.dependencies

    graph = DependencyGraph(
        model=model,
        nodes=nodes,
        _out=out,
        _in={k: tuple(sorted(v, key=DependencyEdge.sort_key)) for k, v in incoming.items()},
    )
    logger.debug('built_graph', nodes=len(graph), edges=graph.edge_count)
    return graph
