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

r"""pnpm ``pnpm-lock.yaml`` (lockfile v6).

Layout::

    lockfileVersion: '6.0'
    importers:
      apps/web:                          ← workspace, named by its path
        dependencies:
          ui:
            specifier: workspace:*
            version: link:../../packages/ui
          next:
            specifier: ^13.4.0
            version: 13.4.0(react@18.2.0)
    packages:
      /next@13.4.0(react@18.2.0):        ← dependency path (node key)
        resolution: {integrity: sha512-...}
        peerDependencies:
          react: ^18.2.0                 ← declared peer range
        dependencies:
          react: 18.2.0                  ← resolved peer, listed here too
          styled-jsx: 5.1.1(react@18.2.0)

pnpm never hoists in the lockfile: every package is recorded once,
under its dependency path, and its dependency values name that path
directly. A package resolved with different peers gets a different
suffix and therefore a different node.

A ``link:`` value may also point at a directory that is not an
importer (``link:../../vendor/local-lib``). Such a directory becomes a
leaf node keyed by its path; it has no ``packages`` entry and is
written back only as the ``link:`` value.

Only workspace lockfiles (with ``importers``) are supported.
"""

from __future__ import annotations

import posixpath
import re
from typing import Any

import yaml

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
from lockprune.formats._dep_path import format_dep_path, parse_dep_path
from lockprune.formats._types import decode_document, is_valid_version, require_str_map
from lockprune.logging import get_logger

__all__ = [
    'PnpmLockfileFormat',
]

logger = get_logger(__name__)

_SUPPORTED_VERSIONS = ('6.0', '6.1')

_IMPORTER_SECTIONS: tuple[tuple[str, DepKind], ...] = (
    ('dependencies', DepKind.RUNTIME),
    ('devDependencies', DepKind.DEV),
    ('optionalDependencies', DepKind.OPTIONAL),
)

_PACKAGE_SECTIONS = ('dependencies', 'optionalDependencies', 'peerDependencies')

_LINK_PREFIX = 'link:'

# Placement flag of a linked directory that is not an importer.
_LOCAL_DIR_FIELD = 'link'

_SNIFF_RE = re.compile(r"""^lockfileVersion:\s*['"]?\d""", re.MULTILINE)


def _is_local_dir(pkg: LockPackage) -> bool:
    return pkg.workspace is None and any(p.fields.get(_LOCAL_DIR_FIELD) is True for p in pkg.placements)


def _normalize_importer(path: str) -> str:
    return posixpath.normpath(path) if path else '.'


class PnpmLockfileFormat:
    """Adapter for pnpm ``pnpm-lock.yaml`` v6 documents."""

    name = 'pnpm'

    def sniff(self, text: str) -> bool:
        """YAML document starting with a ``lockfileVersion`` key."""
        return bool(_SNIFF_RE.search(text[:4096])) and not text.lstrip().startswith('{')

    def parse(self, data: bytes | str) -> LockfileModel:
        """Parse a ``pnpm-lock.yaml`` document."""
        text = decode_document(data)
        try:
            doc = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            mark = getattr(exc, 'problem_mark', None)
            where = f' at line {mark.line + 1}, column {mark.column + 1}' if mark is not None else ''
            problem = getattr(exc, 'problem', None) or str(exc)
            raise MalformedDocument(f'invalid YAML{where}: {problem}') from exc
        if not isinstance(doc, dict):
            raise MalformedDocument('top-level value must be a mapping')

        version = doc.get('lockfileVersion')
        if str(version) not in _SUPPORTED_VERSIONS:
            raise MalformedDocument(
                f'unsupported lockfileVersion {version!r} (supported: {", ".join(_SUPPORTED_VERSIONS)})',
                field='lockfileVersion',
            )
        importers = doc.get('importers')
        if not isinstance(importers, dict):
            raise MalformedDocument(
                'missing "importers" map (only workspace lockfiles are supported)',
                field='importers',
            )
        packages = doc.get('packages') or {}
        if not isinstance(packages, dict):
            raise MalformedDocument('"packages" must be a mapping', field='packages')

        model = LockfileModel(
            dialect=self.name,
            metadata={k: v for k, v in doc.items() if k not in ('importers', 'packages')},
        )

        key_ids: dict[str, PackageId] = {}
        for key in sorted(packages):
            key_ids[key] = self._package_id(key, packages[key])
        importer_ids: dict[str, PackageId] = {}
        for path in sorted(importers):
            if not isinstance(path, str):
                raise MalformedDocument('importer keys must be strings', package=str(path))
            importer_ids[_normalize_importer(path)] = PackageId(_normalize_importer(path), '')

        # Importers plus every other directory a ``link:`` value points at.
        dir_ids = dict(importer_ids)
        for key in sorted(packages):
            self._add_package(model, key, packages[key], key_ids, dir_ids)
        for path in sorted(importers):
            self._add_importer(model, path, importers[path], key_ids, dir_ids)
        for path in sorted(set(dir_ids) - set(importer_ids)):
            model.packages[dir_ids[path]] = LockPackage(
                id=dir_ids[path],
                placements=(Placement(path=path, fields={_LOCAL_DIR_FIELD: True}),),
            )

        logger.debug(
            'parsed_lockfile',
            dialect=self.name,
            lockfile_version=str(version),
            packages=len(model.packages),
            workspaces=len(model.workspaces),
        )
        return model

    def _package_id(self, key: Any, raw: Any) -> PackageId:  # noqa: ANN401
        if not isinstance(key, str):
            raise MalformedDocument('package keys must be strings', package=str(key))
        if not isinstance(raw, dict):
            raise MalformedDocument('entry must be a mapping', package=key)
        try:
            dep_path = parse_dep_path(key)
        except ValueError as exc:
            raise MalformedDocument(str(exc), package=key) from exc
        if dep_path.host is None and not is_valid_version(dep_path.version):
            raise MalformedDocument(f'invalid version {dep_path.version!r}', package=key, field='version')
        name = raw.get('name', dep_path.name)
        if not isinstance(name, str):
            raise MalformedDocument('name must be a string', package=key, field='name')
        return PackageId(name, dep_path.full_version)

    def _resolve(
        self,
        context: str,
        dep_name: str,
        value: str,
        key_ids: dict[str, PackageId],
        dir_ids: dict[str, PackageId],
        *,
        package: str,
        field: str,
    ) -> tuple[PackageId, str]:
        """Return the target node and its key for a dependency value.

        Unknown package keys are returned anyway so the graph builder
        can report them as dangling edges. A ``link:`` to a directory
        that is not an importer registers that directory in *dir_ids*.
        """
        if value.startswith(_LINK_PREFIX):
            target_dir = _normalize_importer(posixpath.join(context, value[len(_LINK_PREFIX) :]))
            if target_dir not in dir_ids:
                dir_ids[target_dir] = PackageId(target_dir, '')
            return dir_ids[target_dir], target_dir
        base = value.split('(', 1)[0]
        key = value if '/' in base else format_dep_path(dep_name, value)
        if key in key_ids:
            return key_ids[key], key
        try:
            dep_path = parse_dep_path(key)
        except ValueError as exc:
            raise MalformedDocument(
                f'unresolvable dependency {dep_name!r}: {exc}',
                package=package,
                field=field,
            ) from exc
        return PackageId(dep_path.name, dep_path.full_version), key

    def _add_package(
        self,
        model: LockfileModel,
        key: str,
        raw: dict[str, Any],
        key_ids: dict[str, PackageId],
        dir_ids: dict[str, PackageId],
    ) -> None:
        package_id = key_ids[key]
        if package_id in model.packages:
            raise MalformedDocument(f'{package_id} is recorded twice', package=key)
        resolution = raw.get('resolution')
        if not isinstance(resolution, dict):
            raise MalformedDocument('missing required field', package=key, field='resolution')

        deps = require_str_map(raw.get('dependencies'), package=key, field='dependencies')
        optional = require_str_map(raw.get('optionalDependencies'), package=key, field='optionalDependencies')
        peers = require_str_map(raw.get('peerDependencies'), package=key, field='peerDependencies')

        edges: list[DependencyEdge] = []
        for dep_name, dep_range in peers.items():
            target: PackageId | None = None
            at = ''
            if dep_name in deps:
                target, at = self._resolve(
                    '.', dep_name, deps[dep_name], key_ids, dir_ids, package=key, field='dependencies'
                )
            edges.append(DependencyEdge(package_id, dep_name, dep_range, DepKind.PEER, target, via=key, at=at))
        for section, kind, values in (
            ('dependencies', DepKind.RUNTIME, deps),
            ('optionalDependencies', DepKind.OPTIONAL, optional),
        ):
            for dep_name, value in values.items():
                if dep_name in peers or (kind is DepKind.OPTIONAL and dep_name in deps):
                    continue
                target, at = self._resolve('.', dep_name, value, key_ids, dir_ids, package=key, field=section)
                edges.append(DependencyEdge(package_id, dep_name, value, kind, target, via=key, at=at))

        fields = {k: v for k, v in raw.items() if k not in _PACKAGE_SECTIONS}
        integrity = resolution.get('integrity', '')
        tarball = resolution.get('tarball', '')
        model.packages[package_id] = LockPackage(
            id=package_id,
            integrity=integrity if isinstance(integrity, str) else '',
            resolved=tarball if isinstance(tarball, str) else '',
            placements=(Placement(path=key, fields=fields),),
            dependencies=tuple(sorted(edges, key=DependencyEdge.sort_key)),
        )

    def _add_importer(
        self,
        model: LockfileModel,
        path: str,
        raw: Any,  # noqa: ANN401
        key_ids: dict[str, PackageId],
        dir_ids: dict[str, PackageId],
    ) -> None:
        raw = raw or {}
        if not isinstance(raw, dict):
            raise MalformedDocument('importer must be a mapping', package=path)
        ws_path = _normalize_importer(path)
        package_id = dir_ids[ws_path]

        edges: list[DependencyEdge] = []
        ranges: dict[str, str] = {}
        for section, kind in _IMPORTER_SECTIONS:
            section_raw = raw.get(section) or {}
            if not isinstance(section_raw, dict):
                raise MalformedDocument('expected a mapping', package=path, field=section)
            for dep_name, spec in section_raw.items():
                field = f'{section}.{dep_name}'
                if not isinstance(spec, dict):
                    raise MalformedDocument('expected {specifier, version}', package=path, field=field)
                specifier = spec.get('specifier')
                value = spec.get('version')
                if not isinstance(specifier, str) or not isinstance(value, str):
                    raise MalformedDocument('specifier and version must be strings', package=path, field=field)
                target, at = self._resolve(ws_path, dep_name, value, key_ids, dir_ids, package=path, field=field)
                edges.append(DependencyEdge(package_id, dep_name, specifier, kind, target, via=ws_path, at=at))
                ranges[dep_name] = specifier

        fields = {k: v for k, v in raw.items() if k not in dict(_IMPORTER_SECTIONS)}
        model.packages[package_id] = LockPackage(
            id=package_id,
            placements=(Placement(path=ws_path, fields=fields),),
            dependencies=tuple(sorted(edges, key=DependencyEdge.sort_key)),
            workspace=ws_path,
        )
        model.workspaces[ws_path] = Workspace(
            name=ws_path,
            path=ws_path,
            package=package_id,
            ranges=dict(sorted(ranges.items())),
        )

    def render(self, model: LockfileModel) -> bytes:
        """Render a model as a ``pnpm-lock.yaml`` document."""
        if model.dialect != self.name:
            raise UnrepresentableModel(f'model was parsed as {model.dialect!r}, not pnpm')
        importers: dict[str, Any] = {}
        packages: dict[str, Any] = {}
        for package_id in sorted(model.packages):
            pkg = model.packages[package_id]
            if len(pkg.placements) != 1:
                raise UnrepresentableModel(
                    f'pnpm records each package under exactly one key, got {len(pkg.placements)}',
                    package=str(package_id),
                )
            placement = pkg.placements[0]
            if pkg.is_workspace:
                importers[placement.path] = self._render_importer(model, pkg, placement)
            elif _is_local_dir(pkg):
                # Only referenced through ``link:`` values.
                continue
            else:
                packages[placement.path] = self._render_package(model, pkg, placement)

        doc: dict[str, Any] = dict(model.metadata)
        doc['importers'] = {path: importers[path] for path in sorted(importers)}
        if packages:
            doc['packages'] = {key: packages[key] for key in sorted(packages)}
        text = yaml.safe_dump(doc, sort_keys=False, default_flow_style=False, allow_unicode=True, width=1000)
        return text.encode('utf-8')

    def _value(self, model: LockfileModel, edge: DependencyEdge, context: str) -> str:
        """The dependency value pnpm writes for *edge*."""
        if edge.target is None:
            raise UnrepresentableModel(f'dependency {edge.name!r} has no resolution', package=str(edge.source))
        target = model.packages.get(edge.target)
        if target is not None and (target.is_workspace or _is_local_dir(target)):
            return _LINK_PREFIX + posixpath.relpath(edge.at, context)
        if edge.at == format_dep_path(edge.name, edge.target.version):
            return edge.target.version
        return edge.at

    def _render_importer(self, model: LockfileModel, pkg: LockPackage, placement: Placement) -> dict[str, Any]:
        entry: dict[str, Any] = dict(placement.fields)
        for edge in pkg.dependencies:
            if edge.kind is DepKind.PEER or edge.target is None:
                raise UnrepresentableModel(
                    f'importers cannot declare {edge.kind.value} dependency {edge.name!r} without a resolution',
                    package=placement.path,
                )
        for section, kind in _IMPORTER_SECTIONS:
            deps = {
                e.name: {'specifier': e.range, 'version': self._value(model, e, placement.path)}
                for e in sorted(pkg.dependencies, key=lambda e: e.name)
                if e.kind is kind
            }
            if deps:
                entry[section] = deps
        return entry

    def _render_package(self, model: LockfileModel, pkg: LockPackage, placement: Placement) -> dict[str, Any]:
        entry: dict[str, Any] = dict(placement.fields)
        deps: dict[str, str] = {}
        optional: dict[str, str] = {}
        peers: dict[str, str] = {}
        for edge in sorted(pkg.dependencies, key=lambda e: e.name):
            if edge.kind is DepKind.DEV:
                raise UnrepresentableModel(
                    f'packages cannot declare dev dependency {edge.name!r}',
                    package=placement.path,
                )
            if edge.kind is DepKind.PEER:
                peers[edge.name] = edge.range
                if edge.target is not None:
                    deps[edge.name] = self._value(model, edge, '.')
            elif edge.target is None:
                raise UnrepresentableModel(f'dependency {edge.name!r} has no resolution', package=placement.path)
            elif edge.kind is DepKind.OPTIONAL:
                optional[edge.name] = self._value(model, edge, '.')
            else:
                deps[edge.name] = self._value(model, edge, '.')
        if deps:
            entry['dependencies'] = deps
        if optional:
            entry['optionalDependencies'] = optional
        if peers:
            entry['peerDependencies'] = peers
        return entry
