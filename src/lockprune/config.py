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

"""Project configuration for lockprune.

Settings live in the ``[tool.lockprune]`` table of ``pyproject.toml``
or at the top level of a ``lockprune.toml``::

    [tool.lockprune]
    dialect = "pnpm"
    kinds = "production"        # or ["runtime", "optional"]
    peer_policy = "strict"
    output = "out/pnpm-lock.yaml"

CLI flags override the file (see :func:`resolve_config`).
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from lockprune._types import KindFilter
from lockprune.errors import ConfigError
from lockprune.formats import available_formats
from lockprune.logging import get_logger
from lockprune.subgraph import PeerPolicy

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

__all__ = [
    'CONFIG_FILENAMES',
    'PruneConfig',
    'find_config',
    'load_config',
    'resolve_config',
]

logger = get_logger(__name__)

CONFIG_FILENAMES: tuple[str, ...] = ('lockprune.toml', 'pyproject.toml')

_KNOWN_KEYS = frozenset({'dialect', 'kinds', 'peer_policy', 'output'})


@dataclass(frozen=True)
class PruneConfig:
    """Resolved lockprune settings.

    Attributes:
        dialect: ``"auto"`` or a registered dialect name.
        kinds: Edge kinds followed by ``prune``.
        peer_policy: Peer-completeness policy for extraction.
        output: Destination path; empty means stdout.
    """

    dialect: str = 'auto'
    kinds: KindFilter = KindFilter.ALL
    peer_policy: PeerPolicy = PeerPolicy.REINCLUDE
    output: str = ''


def _parse_config(table: dict[str, Any]) -> PruneConfig:
    unknown = sorted(set(table) - _KNOWN_KEYS)
    if unknown:
        raise ConfigError(f'Unknown key(s) in lockprune config: {", ".join(unknown)}')

    config = PruneConfig()

    if 'dialect' in table:
        dialect = table['dialect']
        choices = ['auto', *available_formats()]
        if not isinstance(dialect, str) or dialect.strip().lower() not in choices:
            raise ConfigError(f'lockprune.dialect must be one of {", ".join(choices)}')
        config = replace(config, dialect=dialect.strip().lower())

    if 'kinds' in table:
        kinds = table['kinds']
        is_names = isinstance(kinds, list) and all(isinstance(k, str) for k in kinds)
        if not isinstance(kinds, str) and not is_names:
            raise ConfigError('lockprune.kinds must be "all", "production" or a list of kind names')
        try:
            config = replace(config, kinds=KindFilter.parse(kinds))
        except ValueError as exc:
            raise ConfigError(f'lockprune.kinds: {exc}') from exc

    if 'peer_policy' in table:
        policy = table['peer_policy']
        try:
            if not isinstance(policy, str):
                raise ValueError(policy)
            config = replace(config, peer_policy=PeerPolicy(policy.strip().lower()))
        except ValueError as exc:
            raise ConfigError('lockprune.peer_policy must be "reinclude" or "strict"') from exc

    if 'output' in table:
        output = table['output']
        if not isinstance(output, str):
            raise ConfigError('lockprune.output must be a string')
        config = replace(config, output=output)

    return config


def load_config(path: Path) -> PruneConfig:
    """Load settings from *path*.

    A ``pyproject.toml`` contributes its ``[tool.lockprune]`` table; any
    other file is read as a bare lockprune table. A missing file, or a
    ``pyproject.toml`` without the table, yields the defaults.

    Raises:
        ConfigError: If the file is not valid TOML or a key is invalid.
    """
    if not path.is_file():
        logger.debug('config_not_found', path=str(path))
        return PruneConfig()
    try:
        data = tomllib.loads(path.read_text(encoding='utf-8'))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f'{path}: invalid TOML: {exc}') from exc

    if path.name == 'pyproject.toml':
        table = data.get('tool', {}).get('lockprune', {})
    else:
        table = data
    if not isinstance(table, dict):
        raise ConfigError(f'{path}: [tool.lockprune] must be a table')
    config = _parse_config(table)
    logger.debug('loaded_config', path=str(path), dialect=config.dialect, peer_policy=config.peer_policy.value)
    return config


def find_config(start: Path) -> Path | None:
    """Return the first config file in *start* or its parents, if any."""
    for directory in (start, *start.parents):
        for filename in CONFIG_FILENAMES:
            candidate = directory / filename
            if not candidate.is_file():
                continue
            if filename == 'pyproject.toml' and b'[tool.lockprune]' not in candidate.read_bytes():
                continue
            return candidate
    return None


def resolve_config(
    base: PruneConfig,
    *,
    dialect: str | None = None,
    kinds: str | None = None,
    strict_peers: bool = False,
    output: str | None = None,
) -> PruneConfig:
    """Merge CLI flags into the file configuration.

    Priority order (highest wins):
    1. CLI flags
    2. The config file (the ``base`` param)

    Raises:
        ConfigError: If ``kinds`` does not parse.
    """
    config = base
    if dialect is not None:
        config = replace(config, dialect=dialect)
    if kinds is not None:
        try:
            config = replace(config, kinds=KindFilter.parse(kinds))
        except ValueError as exc:
            raise ConfigError(f'--kinds: {exc}') from exc
    if strict_peers:
        config = replace(config, peer_policy=PeerPolicy.STRICT)
    if output is not None:
        config = replace(config, output=output)
    return config
