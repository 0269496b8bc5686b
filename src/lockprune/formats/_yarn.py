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

r"""Yarn classic ``yarn.lock`` (lockfile v1).

Layout::

    # THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.
    # yarn lockfile v1


    "@babel/code-frame@^7.0.0", "@babel/code-frame@^7.10.4":   ← descriptors
      version "7.12.13"
      resolved "https://registry.yarnpkg.com/@babel/code-frame/-/..."
      integrity sha512-...
      dependencies:
        "@babel/highlight" "^7.12.13"                           ← name range

Each block lists the ``name@range`` descriptors that resolved to one
version. A dependency is resolved by looking up its own descriptor, so
yarn edges carry no install-location context. The block key (its
descriptors, sorted and joined with ``", "``) is the placement path.

The format records no workspaces: members and their ``package.json``
ranges live outside the lockfile. A yarn model is therefore reduced
with an explicit selection (``lockprune subgraph --package``) rather
than from workspace roots.

Berry (yarn 2+) lockfiles are YAML with a ``__metadata`` block and are
rejected.
"""

from __future__ import annotations

import json
import re
from typing import Any

from lockprune._types import DependencyEdge, DepKind, LockfileModel, LockPackage, PackageId, Placement
from lockprune.errors import MalformedDocument, UnrepresentableModel
from lockprune.formats._types import decode_document, is_valid_version, require_str_map
from lockprune.logging import get_logger

__all__ = [
    'YarnLockfileFormat',
]

logger = get_logger(__name__)

_MARKER = '# yarn lockfile v1'

_HEADER = f'# THIS IS AN AUTOGENERATED FILE. DO NOT EDIT THIS FILE DIRECTLY.\n{_MARKER}\n\n\n'

_SECTIONS: tuple[tuple[str, DepKind], ...] = (
    ('dependencies', DepKind.RUNTIME),
    ('optionalDependencies', DepKind.OPTIONAL),
)

# Field order yarn writes; anything else follows alphabetically.
_FIELD_ORDER = ('version', 'uid', 'resolved', 'integrity', 'registry', 'dependencies')

_DESCRIPTOR_RE = re.compile(r'\s*("(?:[^"\\]|\\.)*"|[^,\s][^,]*)')
_PAIR_RE = re.compile(r'^("(?:[^"\\]|\\.)*"|[^\s"]+)(?:\s+("(?:[^"\\]|\\.)*"|\S+))?$')
_NEEDS_QUOTES_RE = re.compile(r'[:\s\\",\[\]]')

_SEP = ', '

# Descriptor protocols tried, in order, when resolving ``name`` at ``range``.
_PROTOCOLS = ('', 'npm:', 'file:', 'workspace:', 'yarn:')


def _quote(value: str) -> str:
    """Quote *value* the way yarn does when writing a lockfile."""
    if value.startswith(('true', 'false')) or _NEEDS_QUOTES_RE.search(value) or not re.match(r'[A-Za-z]', value):
        return json.dumps(value, ensure_ascii=False)
    return value


def _unquote(token: str, lineno: int) -> str:
    if not token.startswith('"'):
        return token
    try:
        return json.loads(token)
    except json.JSONDecodeError as exc:
        raise MalformedDocument(f'line {lineno}: bad quoted string {token!r}') from exc


def split_descriptor(descriptor: str) -> tuple[str, str]:
    """``@scope/a@^1.0.0`` → ``('@scope/a', '^1.0.0')``.

    Raises:
        ValueError: If *descriptor* has no ``@`` after the name.
    """
    idx = descriptor.find('@', 1)
    if idx == -1:
        raise ValueError(f'descriptor {descriptor!r} has no "@range" part')
    return descriptor[:idx], descriptor[idx + 1 :]


def _lookup(by_descriptor: dict[str, _Block], name: str, range_: str) -> _Block | None:
    for protocol in _PROTOCOLS:
        block = by_descriptor.get(f'{name}@{protocol}{range_}')
        if block is not None:
            return block
    return None


class _Block:
    """One lockfile block during parsing."""

    def __init__(self, lineno: int, descriptors: list[str]) -> None:
        self.lineno = lineno
        self.descriptors = descriptors
        self.fields: dict[str, Any] = {}

    @property
    def key(self) -> str:
        return _SEP.join(self.descriptors)


def _read_blocks(text: str) -> list[_Block]:
    blocks: list[_Block] = []
    block: _Block | None = None
    section: dict[str, str] | None = None
    for lineno, line in enumerate(text.splitlines(), start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith('#'):
            continue
        indent = len(line) - len(line.lstrip(' '))
        if indent == 0:
            if not stripped.endswith(':'):
                raise MalformedDocument(f'line {lineno}: expected a block header ending in ":"')
            descriptors = sorted({_unquote(m, lineno) for m in _DESCRIPTOR_RE.findall(stripped[:-1])})
            if not descriptors:
                raise MalformedDocument(f'line {lineno}: block header lists no descriptors')
            block = _Block(lineno, descriptors)
            blocks.append(block)
            section = None
            continue

        match = _PAIR_RE.match(stripped)
        if match is None:
            raise MalformedDocument(f'line {lineno}: expected "key value" or "key:"')
        key, value = match.group(1), match.group(2)
        if indent == 2 and block is not None:
            if value is None:
                if not key.endswith(':'):
                    raise MalformedDocument(f'line {lineno}: field {key!r} has no value')
                section = {}
                block.fields[_unquote(key[:-1], lineno)] = section
            else:
                block.fields[_unquote(key, lineno)] = _unquote(value, lineno)
                section = None
        elif indent == 4 and section is not None and value is not None:
            section[_unquote(key, lineno)] = _unquote(value, lineno)
        else:
            raise MalformedDocument(f'line {lineno}: unexpected indentation')
    return blocks


class YarnLockfileFormat:
    """Adapter for yarn classic ``yarn.lock`` v1 documents."""

    name = 'yarn'

    def sniff(self, text: str) -> bool:
        """Text carrying the ``# yarn lockfile v1`` marker near the top."""
        return _MARKER in text[:1024]

    def parse(self, data: bytes | str) -> LockfileModel:
        """Parse a ``yarn.lock`` v1 document."""
        text = decode_document(data)
        if _MARKER not in text[:1024]:
            if '__metadata:' in text:
                raise MalformedDocument('yarn berry lockfiles are not supported (only yarn lockfile v1)')
            raise MalformedDocument(f'missing {_MARKER!r} header')
        blocks = _read_blocks(text)

        by_descriptor: dict[str, _Block] = {}
        ids: dict[str, PackageId] = {}
        for block in blocks:
            for descriptor in block.descriptors:
                if descriptor in by_descriptor:
                    raise MalformedDocument(
                        f'descriptor {descriptor!r} is listed again on line {block.lineno}',
                        package=by_descriptor[descriptor].key,
                    )
                by_descriptor[descriptor] = block
            ids[block.key] = self._package_id(block)

        grouped: dict[PackageId, list[_Block]] = {}
        for block in blocks:
            grouped.setdefault(ids[block.key], []).append(block)

        model = LockfileModel(dialect=self.name)
        for package_id in sorted(grouped):
            placements: list[Placement] = []
            edges: list[DependencyEdge] = []
            for block in grouped[package_id]:
                fields = {k: v for k, v in block.fields.items() if k != 'version' and k not in dict(_SECTIONS)}
                placements.append(Placement(path=block.key, fields=fields))
                edges.extend(self._edges(package_id, block, by_descriptor, ids))
            model.packages[package_id] = LockPackage(
                id=package_id,
                placements=tuple(sorted(placements, key=lambda p: p.path)),
                dependencies=tuple(sorted(edges, key=DependencyEdge.sort_key)),
            )

        logger.debug('parsed_lockfile', dialect=self.name, packages=len(model.packages), blocks=len(blocks))
        return model

    def _package_id(self, block: _Block) -> PackageId:
        try:
            name, _ = split_descriptor(block.descriptors[0])
        except ValueError as exc:
            raise MalformedDocument(str(exc), package=block.key) from exc
        version = block.fields.get('version')
        if not isinstance(version, str):
            raise MalformedDocument('missing required field', package=block.key, field='version')
        if not is_valid_version(version):
            raise MalformedDocument(f'invalid version {version!r}', package=block.key, field='version')
        return PackageId(name, version)

    def _edges(
        self,
        source: PackageId,
        block: _Block,
        by_descriptor: dict[str, _Block],
        ids: dict[str, PackageId],
    ) -> list[DependencyEdge]:
        edges: list[DependencyEdge] = []
        for section, kind in _SECTIONS:
            deps = require_str_map(block.fields.get(section), package=block.key, field=section)
            for dep_name, dep_range in deps.items():
                found = _lookup(by_descriptor, dep_name, dep_range)
                edges.append(
                    DependencyEdge(
                        source=source,
                        name=dep_name,
                        range=dep_range,
                        kind=kind,
                        target=ids[found.key] if found is not None else None,
                        via=block.key,
                        at=found.key if found is not None else '',
                    )
                )
        return edges

    def render(self, model: LockfileModel) -> bytes:
        """Render a model as a ``yarn.lock`` v1 document."""
        if model.dialect != self.name:
            raise UnrepresentableModel(f'model was parsed as {model.dialect!r}, not yarn')
        blocks: dict[str, str] = {}
        for package_id in sorted(model.packages):
            pkg = model.packages[package_id]
            if pkg.is_workspace:
                raise UnrepresentableModel('yarn v1 lockfiles do not record workspaces', package=str(package_id))
            if not pkg.placements:
                raise UnrepresentableModel('package has no block', package=str(package_id))
            for placement in pkg.placements:
                blocks[placement.path] = self._render_block(pkg, placement)
        return (_HEADER + '\n\n'.join(blocks[key] for key in sorted(blocks)) + '\n').encode('utf-8')

    def _render_block(self, pkg: LockPackage, placement: Placement) -> str:
        fields: dict[str, Any] = {'version': pkg.version, **placement.fields}
        for edge in pkg.dependencies:
            if edge.via != placement.path:
                continue
            section = next((s for s, kind in _SECTIONS if kind is edge.kind), None)
            if section is None:
                raise UnrepresentableModel(
                    f'yarn v1 cannot record {edge.kind.value} dependency {edge.name!r}',
                    package=str(pkg.id),
                )
            fields.setdefault(section, {})[edge.name] = edge.range

        order = [k for k in _FIELD_ORDER if k in fields] + sorted(k for k in fields if k not in _FIELD_ORDER)
        lines = [_SEP.join(_quote(d) for d in placement.path.split(_SEP)) + ':']
        for key in order:
            value = fields[key]
            if isinstance(value, dict):
                lines.append(f'  {_quote(key)}:')
                lines.extend(f'    {_quote(name)} {_quote(value[name])}' for name in sorted(value))
            else:
                lines.append(f'  {_quote(key)} {_quote(str(value))}')
        return '\n'.join(lines)
