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

"""pnpm dependency paths.

A dependency path is the key pnpm uses for an entry of the
``packages`` section::

    [host]/<name>(@|/)<version>[suffix]

    /foo@1.0.0                      v6 plain
    /@scope/foo@1.0.0(react@18.2.0) v6 with a resolved peer
    /foo/1.0.0_bar@1.0.0            pre-v6 peer/patch hash suffix
    example.org/foo/1.0.0           custom registry host

The suffix is kept verbatim. Two entries for the same version that
differ only in their suffix are distinct graph nodes because pnpm
installs them separately.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

__all__ = [
    'DepPath',
    'format_dep_path',
    'parse_dep_path',
]

_DEP_PATH_RE = re.compile(
    r"""
    ^
    (?P<host>[^/]+)?             # optional registry host
    /
    (?P<name>@[^/]+/[^/@]+|[^/@]+)
    [/@]
    (?P<version>[^_(]+)
    (?P<suffix>
        (?:\([^)]+\))+           # v6: (peer@1.0.0)(patch_hash=...)
      | _.+                      # pre-v6: _peer@1.0.0+other@2.0.0
    )?
    $
    """,
    re.VERBOSE,
)

_V6_SUFFIX_RE = re.compile(r'\(([^)]+)\)')


@dataclass(frozen=True)
class DepPath:
    """A parsed dependency path.

    Attributes:
        name: Package name, including its ``@scope/`` if any.
        version: Bare version.
        host: Registry host prefix, if any.
        suffix: Peer/patch suffix exactly as written (v6 keeps the
            parentheses, pre-v6 drops the leading underscore).
    """

    name: str
    version: str
    host: str | None = None
    suffix: str | None = None

    @property
    def full_version(self) -> str:
        """Version with its v6 suffix attached, as used for node keys."""
        if self.suffix is None:
            return self.version
        if self.suffix.startswith('('):
            return f'{self.version}{self.suffix}'
        return f'{self.version}_{self.suffix}'

    @property
    def peers(self) -> tuple[str, ...]:
        """Resolved peers named in a v6 suffix (``name@version``)."""
        if not self.suffix or not self.suffix.startswith('('):
            return ()
        return tuple(s for s in _V6_SUFFIX_RE.findall(self.suffix) if not s.startswith('patch_hash='))

    @property
    def patch_hash(self) -> str | None:
        """The patch hash carried in the suffix, if any.

        A pre-v6 suffix with a single segment is ambiguous between a
        patch and a peer hash, so it is returned as a possible patch.
        """
        if not self.suffix:
            return None
        if self.suffix.startswith('('):
            for part in _V6_SUFFIX_RE.findall(self.suffix):
                if part.startswith('patch_hash='):
                    return part[len('patch_hash=') :]
            return None
        head, _, _ = self.suffix.partition('_')
        return head


def parse_dep_path(value: str) -> DepPath:
    """Parse a pnpm dependency path.

    Raises:
        ValueError: If *value* is not a dependency path.
    """
    match = _DEP_PATH_RE.match(value)
    if match is None:
        raise ValueError(f'Not a pnpm dependency path: {value!r}')
    suffix = match.group('suffix')
    if suffix is not None and suffix.startswith('_'):
        suffix = suffix[1:]
    return DepPath(
        name=match.group('name'),
        version=match.group('version'),
        host=match.group('host'),
        suffix=suffix,
    )


def format_dep_path(name: str, version: str) -> str:
    """Return the v6 dependency path for *name* at *version*."""
    return f'/{name}@{version}'
