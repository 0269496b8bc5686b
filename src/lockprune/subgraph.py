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

"""Subgraph extraction: reduce a lockfile model to a selection.

The output keeps exactly the selected packages, the selected placements
of each (all placements for workspaces, whose link entries must travel
with them), and exactly the edges whose two ends are both kept. Edges
with an unresolved range stay with their source. The result therefore
never contains a dangling edge and can be rendered and installed on its
own.

Peer dependencies get one extra rule. A kept package whose resolved
peer was not selected would install but break at runtime, so the
extractor either pulls the peer back in (:attr:`PeerPolicy.REINCLUDE`,
the default) together with its own non-dev closure, or refuses with
:class:`~lockprune.errors.IncompletePeerSet` (:attr:`PeerPolicy.STRICT`).
Closures computed by :func:`~lockprune.closure.closure` always follow
peers, so the rule only ever fires for explicit selections.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from enum import Enum

from lockprune._types import DependencyEdge, DepKind, KindFilter, LockfileModel, PackageId
from lockprune.closure import ClosureResult, closure_from_states
from lockprune.errors import IncompletePeerSet, UnknownPackage, UnknownRoot
from lockprune.graph import DependencyGraph, build_graph
from lockprune.logging import get_logger

__all__ = [
    'PeerPolicy',
    'extract',
    'select',
]

logger = get_logger(__name__)


class PeerPolicy(Enum):
    """What to do when a kept package's resolved peer was not selected."""

    REINCLUDE = 'reinclude'
    STRICT = 'strict'


class _Selection:
    """Kept placements per package, derived from a closure result."""

    def __init__(self, model: LockfileModel, result: ClosureResult) -> None:
        self.model = model
        self.result = result

    def placements(self, package_id: PackageId) -> frozenset[str]:
        if package_id not in self.result.packages:
            return frozenset()
        reached = self.result.placements.get(package_id, frozenset())
        pkg = self.model.packages[package_id]
        if pkg.is_workspace:
            return reached | pkg.placement_paths()
        return reached

    def keeps_edge(self, edge: DependencyEdge) -> bool:
        if edge.via not in self.placements(edge.source):
            return False
        if edge.target is None:
            return True
        return edge.at in self.placements(edge.target)

    def missing_peers(self) -> list[tuple[DependencyEdge, PackageId]]:
        """Resolved peer edges of kept placements whose target is not kept."""
        missing: list[tuple[DependencyEdge, PackageId]] = []
        for package_id in sorted(self.result.packages):
            for edge in self.model.packages[package_id].dependencies:
                if edge.kind is not DepKind.PEER or edge.target is None:
                    continue
                if edge.via in self.placements(package_id) and not self.keeps_edge(edge):
                    missing.append((edge, edge.target))
        return missing


def extract(
    model: LockfileModel,
    result: ClosureResult,
    *,
    peer_policy: PeerPolicy = PeerPolicy.REINCLUDE,
    graph: DependencyGraph | None = None,
) -> LockfileModel:
    """Return a new model restricted to *result*.

    Args:
        model: The full model *result* was computed over.
        result: A closure or an explicit selection.
        peer_policy: How to treat resolved peers missing from *result*.
        graph: The model's graph, if already built.

    Returns:
        A model holding only the selected packages, placements,
        workspaces and the edges between them.

    Raises:
        UnknownPackage: If *result* names a package not in *model*.
        IncompletePeerSet: Under :attr:`PeerPolicy.STRICT`, if a kept
            package's resolved peer was not selected.
        DanglingEdge: If *model* itself is not internally consistent.
    """
    for package_id in result.packages:
        if package_id not in model.packages:
            raise UnknownPackage(str(package_id))
    if graph is None:
        graph = build_graph(model)

    selection = _Selection(model, result)
    missing = selection.missing_peers()
    while missing:
        if peer_policy is PeerPolicy.STRICT:
            edge, target = missing[0]
            raise IncompletePeerSet(edge.source, edge.name, target)
        logger.debug(
            'peer_reincluded',
            peers=sorted({f'{e.source} -> {target}' for e, target in missing}),
        )
        extra = closure_from_states(graph, [(target, e.at) for e, target in missing], KindFilter.PRODUCTION)
        selection = _Selection(model, selection.result.merge(extra))
        missing = selection.missing_peers()

    pruned = LockfileModel(dialect=model.dialect, metadata=dict(model.metadata))
    for package_id in sorted(selection.result.packages):
        pkg = model.packages[package_id]
        kept = selection.placements(package_id)
        pruned.packages[package_id] = dataclasses.replace(
            pkg,
            placements=tuple(p for p in pkg.placements if p.path in kept),
            dependencies=tuple(e for e in pkg.dependencies if selection.keeps_edge(e)),
        )
    for name in sorted(model.workspaces):
        ws = model.workspaces[name]
        kept = pruned.packages.get(ws.package)
        if kept is None:
            continue
        # Ranges describe the declared edges, so they shrink with them.
        declared = {e.name for e in kept.dependencies if e.via == ws.path}
        pruned.workspaces[name] = dataclasses.replace(
            ws,
            ranges={n: r for n, r in ws.ranges.items() if n in declared},
        )

    logger.debug(
        'subgraph_extracted',
        packages=len(pruned.packages),
        dropped=len(model.packages) - len(pruned.packages),
        workspaces=sorted(pruned.workspaces),
    )
    return pruned


def select(
    model: LockfileModel,
    workspaces: Iterable[str],
    packages: Iterable[str] = (),
) -> ClosureResult:
    """Build an explicit selection over *model*.

    Args:
        model: The model to select from.
        workspaces: Workspace names or paths to keep.
        packages: Package references, each either ``name@version`` (all
            placements of that node) or a dialect placement key such as
            ``node_modules/a/node_modules/b``, ``/react@18.2.0`` or
            ``lodash@^4.17.21``.

    Returns:
        A :class:`ClosureResult` without provenance, suitable for
        :func:`extract`.

    Raises:
        UnknownRoot: If a workspace is not declared.
        UnknownPackage: If a package reference matches nothing.
    """
    by_key: dict[str, PackageId] = {}
    by_ref: dict[str, PackageId] = {}
    for package_id, pkg in model.packages.items():
        by_ref[str(package_id)] = package_id
        for placement in pkg.placements:
            by_key[placement.path] = package_id

    roots: list[PackageId] = []
    placements: dict[PackageId, set[str]] = {}
    for name in workspaces:
        ws = model.workspace(name)
        if ws is None:
            raise UnknownRoot(name, model.workspaces)
        roots.append(ws.package)
        placements.setdefault(ws.package, set()).add(ws.path)

    for ref in packages:
        if ref in by_key:
            placements.setdefault(by_key[ref], set()).add(ref)
        elif ref in by_ref:
            pkg = model.packages[by_ref[ref]]
            placements.setdefault(pkg.id, set()).update(pkg.placement_paths() or {''})
        else:
            raise UnknownPackage(ref)

    return ClosureResult(
        roots=tuple(roots),
        packages=frozenset(placements),
        placements={pid: frozenset(placements[pid]) for pid in sorted(placements)},
    )
