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

r"""Prune npm and pnpm lockfiles to what a set of workspaces needs.

A monorepo keeps one lockfile for every workspace. Building a single
app in isolation (a Docker layer, a CI shard) only needs the part of
that lockfile the app actually reaches. lockprune parses the lockfile
into a dialect-neutral model, walks the dependency graph from the
chosen workspaces and renders a smaller lockfile of the same dialect
that installs the same versions.

Supported dialects:

- ``package-lock.json`` v2 and v3 (npm)
- ``pnpm-lock.yaml`` v6 (pnpm)
- ``yarn.lock`` v1 (yarn classic), reduced by explicit selection only

Usage::

    from lockprune import transitive_closure

    data = Path('package-lock.json').read_bytes()
    Path('out/package-lock.json').write_bytes(
        transitive_closure(data, ['apps/web'], 'production'),
    )
"""

from lockprune._types import DepKind, KindFilter, PackageId
from lockprune.closure import ResolvedDependency
from lockprune.engine import data_dir, subgraph, transitive_closure, workspace_transitive_deps
from lockprune.errors import (
    ConfigError,
    DanglingEdge,
    IncompletePeerSet,
    LockPruneError,
    MalformedDocument,
    UnknownPackage,
    UnknownRoot,
    UnrepresentableModel,
)
from lockprune.subgraph import PeerPolicy

__all__ = [
    'ConfigError',
    'DanglingEdge',
    'DepKind',
    'IncompletePeerSet',
    'KindFilter',
    'LockPruneError',
    'MalformedDocument',
    'PackageId',
    'PeerPolicy',
    'ResolvedDependency',
    'UnknownPackage',
    'UnknownRoot',
    'UnrepresentableModel',
    'data_dir',
    'subgraph',
    'transitive_closure',
    'workspace_transitive_deps',
]
