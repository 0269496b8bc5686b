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

"""Format adapter protocol and helpers shared by the dialects."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from lockprune._types import LockfileModel
from lockprune.errors import MalformedDocument

__all__ = [
    'LockfileFormat',
    'decode_document',
    'is_valid_version',
    'require_str_map',
]

# Full semver 2.0 with optional leading "v" and "=" as npm accepts.
_SEMVER_RE = re.compile(
    r'^[=v]?'
    r'(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)'
    r'(?:-[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?'
    r'(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$'
)


@runtime_checkable
class LockfileFormat(Protocol):
    """Protocol for lockfile dialect adapters.

    An adapter converts between one dialect's serialized document and
    the dialect-independent :class:`~lockprune._types.LockfileModel`.
    ``parse(render(model)) == model`` must hold for every model the
    adapter itself produced, including pruned ones.

    Built-in implementations:

    - :class:`~lockprune.formats.NpmLockfileFormat`
    - :class:`~lockprune.formats.PnpmLockfileFormat`
    - :class:`~lockprune.formats.YarnLockfileFormat`
    """

    name: str

    def sniff(self, text: str) -> bool:
        """Return ``True`` if *text* looks like this dialect."""
        ...

    def parse(self, data: bytes | str) -> LockfileModel:
        """Parse a serialized document.

        Raises:
            MalformedDocument: If the document does not match the
                dialect's schema.
        """
        ...

    def render(self, model: LockfileModel) -> bytes:
        """Serialize a model.

        Raises:
            UnrepresentableModel: If the model holds data the dialect
                cannot express.
        """
        ...


def decode_document(data: bytes | str) -> str:
    """Return *data* as text, rejecting undecodable bytes."""
    if isinstance(data, str):
        return data
    try:
        return data.decode('utf-8-sig')
    except UnicodeDecodeError as exc:
        raise MalformedDocument(f'document is not valid UTF-8 (byte offset {exc.start})') from exc


def is_valid_version(version: str) -> bool:
    """Whether *version* is a semver string npm would accept."""
    return bool(_SEMVER_RE.match(version))


def require_str_map(value: Any, *, package: str, field: str) -> dict[str, str]:  # noqa: ANN401
    """Validate a ``{name: range}`` mapping, returning a plain dict."""
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise MalformedDocument(f'expected a mapping, got {type(value).__name__}', package=package, field=field)
    result: dict[str, str] = {}
    for key, item in value.items():
        if not isinstance(key, str) or not isinstance(item, str):
            raise MalformedDocument(f'entry {key!r} must map a name to a string', package=package, field=field)
        result[key] = item
    return result
