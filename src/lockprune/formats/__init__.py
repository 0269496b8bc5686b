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

r"""Lockfile format adapters.

This subpackage provides a protocol-based adapter system. The
:class:`LockfileFormat` protocol lets each package manager's lockfile
dialect plug into the same closure and pruning machinery, which only
ever sees :class:`~lockprune._types.LockfileModel` values.

Built-in adapters:

- :class:`NpmLockfileFormat`: ``package-lock.json`` v2/v3
- :class:`PnpmLockfileFormat`: ``pnpm-lock.yaml`` v6
- :class:`YarnLockfileFormat`: yarn classic ``yarn.lock`` v1

Usage::

    from lockprune.formats import detect_format, get_format

    fmt = get_format('npm')
    model = fmt.parse(data)

    # Or let the content decide:
    fmt = detect_format(data)
"""

from __future__ import annotations

from lockprune.errors import MalformedDocument
from lockprune.formats._npm import NpmLockfileFormat
from lockprune.formats._pnpm import PnpmLockfileFormat
from lockprune.formats._types import LockfileFormat, decode_document
from lockprune.formats._yarn import YarnLockfileFormat

_FORMATS: dict[str, LockfileFormat] = {
    'npm': NpmLockfileFormat(),
    'pnpm': PnpmLockfileFormat(),
    'yarn': YarnLockfileFormat(),
}


def available_formats() -> list[str]:
    """Return the names of the registered dialects, sorted."""
    return sorted(_FORMATS)


def get_format(name: str) -> LockfileFormat:
    """Return the adapter registered under *name*.

    Raises:
        MalformedDocument: If no adapter has that name.
    """
    fmt = _FORMATS.get(name.strip().lower())
    if fmt is None:
        raise MalformedDocument(f'unknown lockfile dialect {name!r} (available: {", ".join(available_formats())})')
    return fmt


def detect_format(data: bytes | str) -> LockfileFormat:
    """Pick the adapter whose dialect *data* looks like.

    Raises:
        MalformedDocument: If no adapter recognizes the content.
    """
    text = decode_document(data)
    for name in available_formats():
        fmt = _FORMATS[name]
        if fmt.sniff(text):
            return fmt
    raise MalformedDocument('could not detect the lockfile dialect (supported: npm v2/v3, pnpm v6, yarn v1)')


def resolve_format(data: bytes | str, dialect: str | None = None) -> LockfileFormat:
    """Return the adapter for *dialect*, sniffing when it is ``None`` or ``"auto"``."""
    if dialect is None or dialect.strip().lower() == 'auto':
        return detect_format(data)
    return get_format(dialect)


__all__ = [
    'LockfileFormat',
    'NpmLockfileFormat',
    'PnpmLockfileFormat',
    'YarnLockfileFormat',
    'available_formats',
    'detect_format',
    'get_format',
    'resolve_format',
]
