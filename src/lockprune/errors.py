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

"""Error taxonomy for lockprune.

Every failure the engine can report is a :class:`LockPruneError`
subclass carrying the offending package, field or name as attributes,
so callers can build a precise diagnostic without parsing the message.
No operation returns a partial result alongside an error.
"""

from __future__ import annotations

from collections.abc import Iterable

from lockprune._types import PackageId

__all__ = [
    'ConfigError',
    'DanglingEdge',
    'IncompletePeerSet',
    'LockPruneError',
    'MalformedDocument',
    'UnknownPackage',
    'UnknownRoot',
    'UnrepresentableModel',
]


class LockPruneError(Exception):
    """Base class for every error raised by lockprune."""


class ConfigError(LockPruneError):
    """Raised when ``[tool.lockprune]`` configuration is invalid."""


class MalformedDocument(LockPruneError):
    """Raised when a lockfile does not conform to its dialect's schema.

    Attributes:
        detail: Human-readable description of the problem.
        package: Package key or name the problem was found in, if any.
        field: Offending field name, if any.
    """

    def __init__(self, detail: str, *, package: str = '', field: str = '') -> None:
        """Initialize with a detail message and optional location."""
        self.detail = detail
        self.package = package
        self.field = field
        where = ''
        if package and field:
            where = f' (package {package!r}, field {field!r})'
        elif package:
            where = f' (package {package!r})'
        elif field:
            where = f' (field {field!r})'
        super().__init__(f'Malformed lockfile: {detail}{where}')


class DanglingEdge(LockPruneError):
    """Raised when an edge points at a package absent from the model.

    Attributes:
        source: The dependent node.
        name: The declared dependency name.
        target: The missing target, or ``None`` if the lockfile recorded
            no resolution at all for a required dependency.
    """

    def __init__(self, source: PackageId, name: str, target: PackageId | None) -> None:
        """Initialize with the edge's endpoints."""
        self.source = source
        self.name = name
        self.target = target
        if target is None:
            msg = f'{source} depends on {name!r} but the lockfile records no resolution for it'
        else:
            msg = f'{source} depends on {target} ({name!r}) which has no package record'
        super().__init__(f'Dangling edge: {msg}')


class UnknownRoot(LockPruneError):
    """Raised when a requested root is not a declared workspace.

    Attributes:
        name: The requested root.
        available: Declared workspace names, sorted.
    """

    def __init__(self, name: str, available: Iterable[str] = ()) -> None:
        """Initialize with the missing name and the known workspaces."""
        self.name = name
        self.available = sorted(available)
        hint = ''
        if self.available:
            hint = f' (known workspaces: {", ".join(self.available)})'
        super().__init__(f'Unknown root workspace {name!r}{hint}')


class UnknownPackage(LockPruneError):
    """Raised when an explicit selection names a package not in the model.

    Attributes:
        reference: The reference as given (``name@version`` or a
            dialect key).
    """

    def __init__(self, reference: str) -> None:
        """Initialize with the unmatched reference."""
        self.reference = reference
        super().__init__(f'Unknown package {reference!r} in selection')


class IncompletePeerSet(LockPruneError):
    """Raised when pruning would drop a package's resolved peer.

    Attributes:
        package: The retained package declaring the peer.
        peer: The declared peer name.
        target: The resolved peer that would be missing.
    """

    def __init__(self, package: PackageId, peer: str, target: PackageId) -> None:
        """Initialize with the package and its missing peer."""
        self.package = package
        self.peer = peer
        self.target = target
        super().__init__(
            f'Incomplete peer set: {package} requires peer {peer!r} resolved to {target}, which was pruned',
        )


class UnrepresentableModel(LockPruneError):
    """Raised when a model cannot be rendered in the target dialect.

    Attributes:
        detail: What could not be expressed.
        package: The package involved, if any.
    """

    def __init__(self, detail: str, *, package: str = '') -> None:
        """Initialize with a detail message and optional package."""
        self.detail = detail
        self.package = package
        where = f' (package {package!r})' if package else ''
        super().__init__(f'Cannot render lockfile: {detail}{where}')
