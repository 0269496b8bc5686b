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

r"""Document-level entry points.

These are the operations a build orchestrator calls. Each takes a
serialized lockfile (``bytes`` or ``str``) and either returns a
serialized result or raises a :class:`~lockprune.errors.LockPruneError`;
nothing is returned on failure and nothing is written to disk::

    ┌──────────────┐  parse   ┌───────┐  build   ┌───────┐  closure  ┌─────────┐
    │ document     │ ───────▶ │ model │ ───────▶ │ graph │ ────────▶ │ result  │
    └──────────────┘          └───────┘          └───────┘           └────┬────┘
           ▲                                                              │
           │ render            ┌──────────────┐           extract         │
           └────────────────── │ pruned model │ ◀─────────────────────────┘
                               └──────────────┘

Usage::

    from lockprune.engine import transitive_closure

    pruned = transitive_closure(Path('package-lock.json').read_bytes(), ['web'], 'production')
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterable, Mapping
from pathlib import Path

from lockprune._types import KindFilter
from lockprune.closure import ResolvedDependency, closure, resolve_workspace_dependencies
from lockprune.errors import LockPruneError
from lockprune.formats import resolve_format
from lockprune.graph import build_graph
from lockprune.logging import get_logger
from lockprune.subgraph import PeerPolicy, extract, select

__all__ = [
    'data_dir',
    'subgraph',
    'transitive_closure',
    'workspace_transitive_deps',
]

logger = get_logger(__name__)

_APP_NAME = 'lockprune'


def _kind_filter(kinds: KindFilter | str | Iterable[str]) -> KindFilter:
    try:
        return KindFilter.parse(kinds)
    except ValueError as exc:
        raise LockPruneError(str(exc)) from exc


def _peer_policy(policy: PeerPolicy | str | None) -> PeerPolicy:
    if policy is None:
        return PeerPolicy.REINCLUDE
    if isinstance(policy, PeerPolicy):
        return policy
    try:
        return PeerPolicy(policy.strip().lower())
    except ValueError as exc:
        choices = ', '.join(p.value for p in PeerPolicy)
        raise LockPruneError(f'unknown peer policy {policy!r} (expected one of: {choices})') from exc


def transitive_closure(
    contents: bytes | str,
    roots: Iterable[str],
    kinds: KindFilter | str | Iterable[str] = 'all',
    *,
    dialect: str | None = None,
    peer_policy: PeerPolicy | str | None = None,
) -> bytes:
    """Prune a lockfile to the closure of *roots*.

    Args:
        contents: The serialized lockfile.
        roots: Workspace names or paths. Pass ``"."`` to keep the
            repository root workspace as well.
        kinds: ``"all"``, ``"production"``, a comma list of kinds or a
            :class:`KindFilter`.
        dialect: Adapter name, or ``None`` to sniff the content.
        peer_policy: Peer-completeness policy; ``None`` means
            :attr:`PeerPolicy.REINCLUDE`.

    Returns:
        The pruned lockfile in the same dialect.

    Raises:
        MalformedDocument: If the lockfile cannot be parsed.
        UnknownRoot: If a root is not a declared workspace.
        DanglingEdge: If the lockfile references a missing package.
    """
    fmt = resolve_format(contents, dialect)
    model = fmt.parse(contents)
    graph = build_graph(model)
    result = closure(graph, list(roots), _kind_filter(kinds))
    pruned = extract(model, result, peer_policy=_peer_policy(peer_policy), graph=graph)
    logger.debug(
        'pruned_lockfile',
        dialect=fmt.name,
        roots=[str(r) for r in result.roots],
        kept=len(pruned.packages),
        total=len(model.packages),
    )
    return fmt.render(pruned)


def workspace_transitive_deps(
    contents: bytes | str,
    workspace: str,
    unresolved_deps: Mapping[str, str],
    *,
    dialect: str | None = None,
    kinds: KindFilter | str | Iterable[str] = 'all',
) -> list[ResolvedDependency]:
    """List every package a workspace's dependencies pull in.

    Args:
        contents: The serialized lockfile.
        workspace: Workspace name or path whose context resolves the
            dependency names.
        unresolved_deps: Dependency name → requested range.
        dialect: Adapter name, or ``None`` to sniff the content.
        kinds: Edge kinds to follow past the direct dependencies.

    Returns:
        One entry per reached placement, plus a ``found=False`` entry
        per name the lockfile has no resolution for.

    Raises:
        MalformedDocument: If the lockfile cannot be parsed.
        UnknownRoot: If *workspace* is not declared.
        DanglingEdge: If the lockfile references a missing package.
    """
    fmt = resolve_format(contents, dialect)
    graph = build_graph(fmt.parse(contents))
    _, resolved = resolve_workspace_dependencies(graph, workspace, unresolved_deps, _kind_filter(kinds))
    return resolved


def subgraph(
    contents: bytes | str,
    workspaces: Iterable[str],
    packages: Iterable[str],
    *,
    dialect: str | None = None,
    peer_policy: PeerPolicy | str | None = None,
) -> bytes:
    """Restrict a lockfile to an explicit selection.

    Args:
        contents: The serialized lockfile.
        workspaces: Workspace names or paths to keep.
        packages: ``name@version`` references or placement keys.
        dialect: Adapter name, or ``None`` to sniff the content.
        peer_policy: Peer-completeness policy; ``None`` means
            :attr:`PeerPolicy.REINCLUDE`.

    Returns:
        The restricted lockfile in the same dialect.

    Raises:
        MalformedDocument: If the lockfile cannot be parsed.
        UnknownRoot: If a workspace is not declared.
        UnknownPackage: If a package reference matches nothing.
        IncompletePeerSet: Under :attr:`PeerPolicy.STRICT`, if a
            selected package's resolved peer was not selected.
    """
    fmt = resolve_format(contents, dialect)
    model = fmt.parse(contents)
    selection = select(model, list(workspaces), list(packages))
    pruned = extract(model, selection, peer_policy=_peer_policy(peer_policy))
    return fmt.render(pruned)


def data_dir() -> Path:
    """Return the per-user data directory for lockprune.

    ``$LOCKPRUNE_DATA_DIR`` wins when set. Otherwise the platform's
    conventional location is used. The directory is not created.
    """
    override = os.environ.get('LOCKPRUNE_DATA_DIR', '')
    if override:
        return Path(override).expanduser()
    if sys.platform == 'win32':
        base = os.environ.get('LOCALAPPDATA') or str(Path.home() / 'AppData' / 'Local')
        return Path(base) / _APP_NAME
    if sys.platform == 'darwin':
        return Path.home() / 'Library' / 'Application Support' / _APP_NAME
    xdg = os.environ.get('XDG_DATA_HOME', '')
    base_dir = Path(xdg) if xdg else Path.home() / '.local' / 'share'
    return base_dir / _APP_NAME
