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

"""Tests for lockprune._types."""

from __future__ import annotations

import pytest

from lockprune._types import (
    DependencyEdge,
    DepKind,
    KindFilter,
    LockfileModel,
    LockPackage,
    PackageId,
    Placement,
    Workspace,
)

# ── Fixtures ─────────────────────────────────────────────────────────

_ROOT = PackageId('monorepo', '1.0.0')
_WEB = PackageId('web', '0.1.0')
_REACT = PackageId('react', '18.2.0')


def _make_model() -> LockfileModel:
    """A model with a root workspace, one member and one package."""
    model = LockfileModel(dialect='npm')
    model.packages[_ROOT] = LockPackage(id=_ROOT, placements=(Placement(''),), workspace='')
    model.packages[_WEB] = LockPackage(
        id=_WEB,
        placements=(Placement('apps/web'), Placement('node_modules/web', {'link': True})),
        dependencies=(
            DependencyEdge(_WEB, 'react', '^18.2.0', DepKind.RUNTIME, _REACT, via='apps/web', at='node_modules/react'),
        ),
        workspace='apps/web',
    )
    model.packages[_REACT] = LockPackage(id=_REACT, placements=(Placement('node_modules/react'),))
    model.workspaces['monorepo'] = Workspace('monorepo', '', _ROOT)
    model.workspaces['web'] = Workspace('web', 'apps/web', _WEB, {'react': '^18.2.0'})
    return model


class TestPackageId:
    """Tests for PackageId."""

    def test_str_is_name_at_version(self) -> None:
        """str() renders name@version."""
        assert str(PackageId('@scope/pkg', '1.2.3')) == '@scope/pkg@1.2.3'

    def test_ordering_is_lexical(self) -> None:
        """Ids sort by name, then version."""
        ids = [PackageId('b', '1.0.0'), PackageId('a', '2.0.0'), PackageId('a', '1.0.0')]
        assert sorted(ids) == [PackageId('a', '1.0.0'), PackageId('a', '2.0.0'), PackageId('b', '1.0.0')]

    def test_hashable(self) -> None:
        """Equal ids collapse in a set."""
        assert len({PackageId('a', '1.0.0'), PackageId('a', '1.0.0')}) == 1


class TestDependencyEdge:
    """Tests for DependencyEdge."""

    def test_resolved(self) -> None:
        """An edge with a target is resolved."""
        edge = DependencyEdge(_WEB, 'react', '^18', DepKind.RUNTIME, _REACT)
        assert edge.resolved

    def test_unresolved(self) -> None:
        """An edge without a target is not resolved."""
        edge = DependencyEdge(_WEB, 'fsevents', '^2', DepKind.OPTIONAL)
        assert not edge.resolved

    def test_sort_key_orders_by_source_then_name(self) -> None:
        """sort_key orders by source name, source version and dependency name."""
        a = DependencyEdge(PackageId('a', '1.0.0'), 'z', '*', DepKind.RUNTIME)
        b = DependencyEdge(PackageId('a', '1.0.0'), 'b', '*', DepKind.RUNTIME)
        c = DependencyEdge(PackageId('0', '1.0.0'), 'z', '*', DepKind.RUNTIME)
        assert sorted([a, b, c], key=DependencyEdge.sort_key) == [c, b, a]


class TestLockPackage:
    """Tests for LockPackage."""

    def test_name_and_version(self) -> None:
        """name and version come from the id."""
        pkg = LockPackage(id=_REACT)
        assert pkg.name == 'react'
        assert pkg.version == '18.2.0'

    def test_is_workspace(self) -> None:
        """Only records with a workspace path are workspaces."""
        assert LockPackage(id=_ROOT, workspace='').is_workspace
        assert not LockPackage(id=_REACT).is_workspace

    def test_placement_lookup(self) -> None:
        """placement() finds a placement by path."""
        model = _make_model()
        web = model.packages[_WEB]
        placement = web.placement('node_modules/web')
        assert placement is not None
        assert placement.fields == {'link': True}
        assert web.placement('node_modules/nope') is None

    def test_placement_paths(self) -> None:
        """placement_paths() lists every placement."""
        assert _make_model().packages[_WEB].placement_paths() == {'apps/web', 'node_modules/web'}


class TestLockfileModel:
    """Tests for LockfileModel."""

    def test_workspace_by_name(self) -> None:
        """Workspaces are found by name."""
        ws = _make_model().workspace('web')
        assert ws is not None
        assert ws.package == _WEB

    def test_workspace_by_path(self) -> None:
        """Workspaces are found by path, with or without ./ and a trailing slash."""
        model = _make_model()
        for path in ('apps/web', './apps/web', 'apps/web/'):
            ws = model.workspace(path)
            assert ws is not None, path
            assert ws.name == 'web'

    @pytest.mark.parametrize('path', ['.', '', './'])
    def test_root_workspace_by_dot(self, path: str) -> None:
        """'.' and '' both name the repository root."""
        ws = _make_model().workspace(path)
        assert ws is not None
        assert ws.package == _ROOT

    def test_unknown_workspace(self) -> None:
        """Unknown names return None."""
        assert _make_model().workspace('missing-app') is None

    def test_edges_in_node_order(self) -> None:
        """edges() yields every declared edge."""
        edges = list(_make_model().edges())
        assert [(e.source, e.name) for e in edges] == [(_WEB, 'react')]

    def test_find(self) -> None:
        """find() returns every record with a given name."""
        model = _make_model()
        other = PackageId('react', '17.0.2')
        model.packages[other] = LockPackage(id=other, placements=(Placement('node_modules/a/node_modules/react'),))
        assert [p.version for p in model.find('react')] == ['17.0.2', '18.2.0']
        assert model.find('vue') == []


class TestKindFilter:
    """Tests for KindFilter."""

    def test_all(self) -> None:
        """'all' follows every kind."""
        kinds = KindFilter.parse('all')
        assert kinds == KindFilter.ALL
        assert all(kinds.follows(k) for k in DepKind)

    @pytest.mark.parametrize('value', ['production', 'prod', ' Production '])
    def test_production_skips_dev(self, value: str) -> None:
        """'production' skips dev edges only."""
        kinds = KindFilter.parse(value)
        assert kinds == KindFilter.PRODUCTION
        assert not kinds.follows(DepKind.DEV)
        assert kinds.follows(DepKind.RUNTIME)
        assert kinds.follows(DepKind.OPTIONAL)

    def test_comma_list(self) -> None:
        """A comma list names the followed kinds."""
        assert KindFilter.parse('runtime, dev') == KindFilter({DepKind.RUNTIME, DepKind.DEV})

    def test_iterable(self) -> None:
        """An iterable of names is accepted."""
        assert KindFilter.parse(['optional']) == KindFilter({DepKind.OPTIONAL})

    def test_peer_always_followed(self) -> None:
        """Peer edges are followed even when the filter omits them."""
        assert KindFilter.parse('runtime').follows(DepKind.PEER)

    def test_passthrough(self) -> None:
        """A KindFilter parses to itself."""
        assert KindFilter.parse(KindFilter.PRODUCTION) is KindFilter.PRODUCTION

    def test_unknown_kind(self) -> None:
        """Unknown kind names raise ValueError."""
        with pytest.raises(ValueError, match='Unknown dependency kind'):
            KindFilter.parse('runtime,bundled')

    def test_repr(self) -> None:
        """repr lists kinds sorted."""
        assert repr(KindFilter.of([DepKind.RUNTIME, DepKind.DEV])) == 'KindFilter(dev,runtime)'
