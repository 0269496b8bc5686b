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

r"""npm ``package-lock.json`` (lockfile v2 and v3).

Only the ``packages`` map is read. Its keys are install locations::

    ""                                   the repository root
    "apps/web"                           a workspace member
    "node_modules/web"                   link to apps/web (link: true)
    "node_modules/react"                 hoisted package
    "node_modules/a/node_modules/b"      b nested under a
    "apps/web/node_modules/lodash"       lodash nested under a workspace

npm resolves a dependency the way Node's module loader does, walking
up from the dependent's own location::

    dependent:  node_modules/a/node_modules/b     wants "c"
    candidates: node_modules/a/node_modules/b/node_modules/c
                node_modules/a/node_modules/c
                node_modules/c                    ← first hit wins

The same ``name@version`` may be placed at several locations; those
become one graph node with several placements, each keeping its own
resolution context.

Usage::

    from lockprune.formats import NpmLockfileFormat

    npm = NpmLockfileFormat()
    model = npm.parse(Path('package-lock.json').read_bytes())
    data = npm.render(model)
"""

from __future__ import annotations

import json
import posixpath
import re
from dataclasses import dataclass, field
from typing import Any

from lockprune._types import (
    DependencyEdge,
    DepKind,
    LockfileModel,
    LockPackage,
    PackageId,
    Placement,
    Workspace,
)
from lockprune.errors import MalformedDocument, UnrepresentableModel
from lockprune.formats._types import decode_document, is_valid_version, require_str_map
from lockprune.logging import get_logger

__all__ = [
    'NpmLockfileFormat',
]

logger = get_logger(__name__)

_SUPPORTED_VERSIONS = (2, 3)

_NODE_MODULES = 'node_modules/'

# Every section yields its own edges. For ``Workspace.ranges`` a name listed in
# several sections takes its range from the first one here.
_PARSE_SECTIONS: tuple[tuple[str, DepKind], ...] = (
    ('optionalDependencies', DepKind.OPTIONAL),
    ('peerDependencies', DepKind.PEER),
    ('dependencies', DepKind.RUNTIME),
    ('devDependencies', DepKind.DEV),
)

_RENDER_SECTIONS: tuple[tuple[str, DepKind], ...] = (
    ('dependencies', DepKind.RUNTIME),
    ('devDependencies', DepKind.DEV),
    ('optionalDependencies', DepKind.OPTIONAL),
    ('peerDependencies', DepKind.PEER),
)

# Entry fields the model interprets; everything else is kept verbatim.
_RECORD_FIELDS = frozenset({'name', 'version', 'resolved', 'integrity', *(s for s, _ in _PARSE_SECTIONS)})

_SNIFF_RE = re.compile(r'"lockfileVersion"\s*:\s*[23]\b')


@dataclass
class _Entry:
    """One ``packages`` entry during parsing."""

    path: str
    raw: dict[str, Any]
    kind: str  # 'workspace', 'link' or 'package'
    edges: list[DependencyEdge] = field(default_factory=list)


def _is_install_path(path: str) -> bool:
    return path.startswith(_NODE_MODULES) or f'/{_NODE_MODULES}' in path


def _name_from_path(path: str) -> str:
    """``node_modules/a/node_modules/@s/b`` → ``@s/b``."""
    idx = path.rfind(_NODE_MODULES)
    return path[idx + len(_NODE_MODULES) :]


def _parent_path(path: str) -> str:
    """The location whose ``node_modules`` directory holds *path*."""
    idx = path.rfind(f'/{_NODE_MODULES}')
    return path[:idx] if idx != -1 else ''


def _normalize_dir(path: str) -> str:
    normalized = posixpath.normpath(path)
    return '' if normalized == '.' else normalized


def _candidate_paths(path: str, name: str) -> list[str]:
    """Locations Node would try, nearest first, for *name* required at *path*."""
    candidates: list[str] = []
    current = path
    while True:
        candidates.append(f'{current}/{_NODE_MODULES}{name}' if current else f'{_NODE_MODULES}{name}')
        if not current:
            return candidates
        current = _parent_path(current)


class NpmLockfileFormat:
    """Adapter for npm ``package-lock.json`` v2/v3 documents."""

    name = 'npm'

    def sniff(self, text: str) -> bool:
        """JSON object declaring ``lockfileVersion`` 2 or 3."""
        return text.lstrip().startswith('{') and bool(_SNIFF_RE.search(text[:4096]))

    def parse(self, data: bytes | str) -> LockfileModel:
        """Parse a ``package-lock.json`` document."""
        text = decode_document(data)
        try:
            doc = json.loads(text)
        except json.JSONDecodeError as exc:
            raise MalformedDocument(f'invalid JSON at line {exc.lineno}, column {exc.colno}: {exc.msg}') from exc
        if not isinstance(doc, dict):
            raise MalformedDocument(f'top-level value must be an object, got {type(doc).__name__}')

        version = doc.get('lockfileVersion')
        if isinstance(version, bool) or not isinstance(version, int):
            raise MalformedDocument('missing or non-integer lockfileVersion', field='lockfileVersion')
        if version not in _SUPPORTED_VERSIONS:
            raise MalformedDocument(
                f'unsupported lockfileVersion {version} (supported: 2, 3)',
                field='lockfileVersion',
            )
        packages = doc.get('packages')
        if not isinstance(packages, dict):
            raise MalformedDocument('missing "packages" map', field='packages')

        metadata = {k: v for k, v in doc.items() if k not in ('packages', 'dependencies')}
        entries = {path: self._classify(path, packages[path], doc) for path in sorted(packages)}

        # Workspace nodes first: link entries resolve to them.
        ids: dict[str, PackageId] = {}
        for entry in entries.values():
            if entry.kind == 'workspace':
                ids[entry.path] = self._workspace_id(entry, doc)
        for entry in entries.values():
            if entry.kind == 'link':
                target = _normalize_dir(entry.raw['resolved'])
                if entries.get(target) is None or entries[target].kind != 'workspace':
                    raise MalformedDocument(
                        f'link points at {target!r}, which is not a workspace entry',
                        package=entry.path,
                        field='resolved',
                    )
                ids[entry.path] = ids[target]
            elif entry.kind == 'package':
                ids[entry.path] = self._package_id(entry)

        for entry in entries.values():
            if entry.kind != 'link':
                entry.edges = self._resolve_edges(entry, ids[entry.path], entries, ids)

        model = LockfileModel(dialect=self.name, metadata=metadata)
        self._assemble(model, entries, ids)
        logger.debug(
            'parsed_lockfile',
            dialect=self.name,
            lockfile_version=version,
            packages=len(model.packages),
            workspaces=len(model.workspaces),
            placements=len(entries),
        )
        return model

    def _classify(self, path: str, raw: Any, doc: dict[str, Any]) -> _Entry:  # noqa: ANN401
        if not isinstance(raw, dict):
            raise MalformedDocument(f'entry must be an object, got {type(raw).__name__}', package=path)
        for key in ('name', 'version', 'resolved', 'integrity'):
            if key in raw and not isinstance(raw[key], str):
                raise MalformedDocument(f'{key} must be a string', package=path, field=key)
        if not _is_install_path(path):
            return _Entry(path=path, raw=raw, kind='workspace')
        if raw.get('link') is True:
            if not raw.get('resolved'):
                raise MalformedDocument('link entry without a resolved path', package=path, field='resolved')
            return _Entry(path=path, raw=raw, kind='link')
        if 'version' not in raw:
            raise MalformedDocument('missing required field', package=path, field='version')
        if not is_valid_version(raw['version']):
            raise MalformedDocument(f'invalid version {raw["version"]!r}', package=path, field='version')
        return _Entry(path=path, raw=raw, kind='package')

    def _workspace_id(self, entry: _Entry, doc: dict[str, Any]) -> PackageId:
        if entry.path == '':
            name = entry.raw.get('name') or doc.get('name') or ''
        else:
            name = entry.raw.get('name') or posixpath.basename(entry.path)
        return PackageId(str(name), entry.raw.get('version', ''))

    def _package_id(self, entry: _Entry) -> PackageId:
        name = entry.raw.get('name') or _name_from_path(entry.path)
        return PackageId(name, entry.raw['version'])

    def _resolve_edges(
        self,
        entry: _Entry,
        source: PackageId,
        entries: dict[str, _Entry],
        ids: dict[str, PackageId],
    ) -> list[DependencyEdge]:
        # One edge per section: a name may be both a peer and a dev dependency.
        # optionalDependencies overrides a same-name runtime entry, as in npm.
        optional = require_str_map(
            entry.raw.get('optionalDependencies'), package=entry.path, field='optionalDependencies'
        )
        edges: list[DependencyEdge] = []
        for section, kind in _PARSE_SECTIONS:
            deps = require_str_map(entry.raw.get(section), package=entry.path, field=section)
            for dep_name, dep_range in deps.items():
                if kind is DepKind.RUNTIME and dep_name in optional:
                    continue
                target: PackageId | None = None
                at = ''
                for candidate in _candidate_paths(entry.path, dep_name):
                    found = entries.get(candidate)
                    if found is None:
                        continue
                    target = ids[candidate]
                    at = _normalize_dir(found.raw['resolved']) if found.kind == 'link' else candidate
                    break
                edges.append(
                    DependencyEdge(
                        source=source,
                        name=dep_name,
                        range=dep_range,
                        kind=kind,
                        target=target,
                        via=entry.path,
                        at=at,
                    )
                )
        return edges

    def _assemble(self, model: LockfileModel, entries: dict[str, _Entry], ids: dict[str, PackageId]) -> None:
        grouped: dict[PackageId, list[_Entry]] = {}
        for entry in entries.values():
            grouped.setdefault(ids[entry.path], []).append(entry)

        for package_id, group in grouped.items():
            dirs = [e for e in group if e.kind == 'workspace']
            packages = [e for e in group if e.kind == 'package']
            if len(dirs) > 1:
                raise MalformedDocument(
                    f'workspace {package_id} is declared at {dirs[0].path!r} and {dirs[1].path!r}',
                    package=dirs[1].path,
                )
            if dirs and packages:
                raise MalformedDocument(
                    f'{package_id} is both a workspace and an installed package',
                    package=packages[0].path,
                )

            placements: list[Placement] = []
            edges: list[DependencyEdge] = []
            integrity = ''
            resolved = ''
            for index, entry in enumerate(group):
                fields = {k: v for k, v in entry.raw.items() if k not in _RECORD_FIELDS}
                if entry.kind == 'package':
                    entry_integrity = entry.raw.get('integrity', '')
                    entry_resolved = entry.raw.get('resolved', '')
                    if index == 0:
                        integrity, resolved = entry_integrity, entry_resolved
                    if entry_integrity != integrity:
                        if entry_integrity and integrity:
                            raise MalformedDocument(
                                f'integrity differs from {group[0].path!r} for the same {package_id}',
                                package=entry.path,
                                field='integrity',
                            )
                        fields['integrity'] = entry_integrity
                    if entry_resolved != resolved:
                        fields['resolved'] = entry_resolved
                elif entry.kind == 'workspace':
                    if 'resolved' in entry.raw:
                        fields['resolved'] = entry.raw['resolved']
                    if 'integrity' in entry.raw:
                        fields['integrity'] = entry.raw['integrity']
                placements.append(Placement(path=entry.path, fields=fields))
                edges.extend(entry.edges)

            workspace_path = dirs[0].path if dirs else None
            record = LockPackage(
                id=package_id,
                integrity=integrity,
                resolved=resolved,
                placements=tuple(sorted(placements, key=lambda p: p.path)),
                dependencies=tuple(sorted(edges, key=DependencyEdge.sort_key)),
                workspace=workspace_path,
            )
            model.packages[package_id] = record

            if workspace_path is not None:
                ws_entry = dirs[0]
                if package_id.name in model.workspaces:
                    raise MalformedDocument(
                        f'duplicate workspace name {package_id.name!r}',
                        package=ws_entry.path,
                        field='name',
                    )
                ranges: dict[str, str] = {}
                for section, _ in reversed(_PARSE_SECTIONS):
                    ranges.update(require_str_map(ws_entry.raw.get(section), package=ws_entry.path, field=section))
                model.workspaces[package_id.name] = Workspace(
                    name=package_id.name,
                    path=workspace_path,
                    package=package_id,
                    ranges=dict(sorted(ranges.items())),
                )

    def render(self, model: LockfileModel) -> bytes:
        """Render a model as a ``package-lock.json`` document."""
        if model.dialect != self.name:
            raise UnrepresentableModel(f'model was parsed as {model.dialect!r}, not npm')
        entries: dict[str, dict[str, Any]] = {}
        for package_id in sorted(model.packages):
            pkg = model.packages[package_id]
            if not pkg.placements:
                raise UnrepresentableModel('package has no location in the install tree', package=str(package_id))
            paths = pkg.placement_paths()
            for edge in pkg.dependencies:
                if edge.via not in paths:
                    raise UnrepresentableModel(
                        f'dependency {edge.name!r} was resolved from unknown placement {edge.via!r}',
                        package=str(package_id),
                    )
            for placement in pkg.placements:
                if placement.path in entries:
                    raise UnrepresentableModel(
                        f'two packages are placed at {placement.path!r}',
                        package=str(package_id),
                    )
                entries[placement.path] = self._render_entry(pkg, placement)

        doc: dict[str, Any] = dict(model.metadata)
        doc.setdefault('lockfileVersion', 3)
        doc['packages'] = {path: entries[path] for path in sorted(entries)}
        return (json.dumps(doc, indent=2, ensure_ascii=False) + '\n').encode('utf-8')

    def _render_entry(self, pkg: LockPackage, placement: Placement) -> dict[str, Any]:
        fields = placement.fields
        if fields.get('link') is True:
            if pkg.workspace is None:
                raise UnrepresentableModel(
                    f'link at {placement.path!r} targets a package that is not a workspace',
                    package=str(pkg.id),
                )
            return {'resolved': pkg.workspace, **fields}

        entry: dict[str, Any] = {}
        if pkg.is_workspace or pkg.name != _name_from_path(placement.path):
            if pkg.name:
                entry['name'] = pkg.name
        if pkg.version:
            entry['version'] = pkg.version
        resolved = fields.get('resolved', pkg.resolved)
        if resolved:
            entry['resolved'] = resolved
        integrity = fields.get('integrity', pkg.integrity)
        if integrity:
            entry['integrity'] = integrity
        for key, value in fields.items():
            if key not in ('resolved', 'integrity'):
                entry[key] = value

        edges = sorted((e for e in pkg.dependencies if e.via == placement.path), key=lambda e: e.name)
        for section, kind in _RENDER_SECTIONS:
            deps = {e.name: e.range for e in edges if e.kind is kind}
            if deps:
                entry[section] = deps
        return entry
