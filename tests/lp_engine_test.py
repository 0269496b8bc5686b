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

"""Tests for the document-level entry points."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
import yaml

from lockprune import engine
from lockprune.errors import (
    DanglingEdge,
    IncompletePeerSet,
    LockPruneError,
    MalformedDocument,
    UnknownPackage,
    UnknownRoot,
)
from lockprune.subgraph import PeerPolicy

# ── Fixtures ─────────────────────────────────────────────────────────

_NPM = json.dumps({
    'name': 'repo',
    'lockfileVersion': 3,
    'packages': {
        '': {'name': 'repo', 'workspaces': ['apps/*']},
        'apps/app': {'name': 'app', 'version': '0.0.0', 'dependencies': {'lib': '^1.0.0'}},
        'apps/other-app': {'name': 'other-app', 'version': '0.0.0', 'dependencies': {'other': '^3.0.0'}},
        'node_modules/app': {'resolved': 'apps/app', 'link': True},
        'node_modules/other-app': {'resolved': 'apps/other-app', 'link': True},
        'node_modules/lib': {'version': '1.0.0', 'dependencies': {'util': '^2.0.0'}},
        'node_modules/util': {'version': '2.0.0'},
        'node_modules/other': {'version': '3.0.0'},
    },
})

_PNPM = """\
lockfileVersion: '6.0'
importers:
  apps/app:
    dependencies:
      lib:
        specifier: ^1.0.0
        version: 1.0.0
  apps/other-app:
    dependencies:
      other:
        specifier: ^3.0.0
        version: 3.0.0
packages:
  /lib@1.0.0:
    resolution: {integrity: sha512-lib}
    dependencies:
      util: 2.0.0
  /util@2.0.0:
    resolution: {integrity: sha512-util}
  /other@3.0.0:
    resolution: {integrity: sha512-other}
"""

_PEERS = json.dumps({
    'name': 'repo',
    'lockfileVersion': 3,
    'packages': {
        '': {'name': 'repo'},
        'apps/app': {'name': 'app', 'version': '0.0.0', 'dependencies': {'plugin': '^1.0.0'}},
        'node_modules/app': {'resolved': 'apps/app', 'link': True},
        'node_modules/plugin': {'version': '1.0.0', 'peerDependencies': {'react': '^18.0.0'}},
        'node_modules/react': {'version': '18.2.0'},
    },
})

_PEER_AND_DEV = json.dumps({
    'name': 'repo',
    'lockfileVersion': 3,
    'packages': {
        '': {'name': 'repo'},
        'packages/ui': {
            'name': 'ui',
            'version': '1.0.0',
            'peerDependencies': {'react': '^18.0.0'},
            'devDependencies': {'react': '18.2.0'},
        },
        'node_modules/ui': {'resolved': 'packages/ui', 'link': True},
        'node_modules/react': {'version': '18.2.0'},
    },
})

_LOCAL_LINK = """\
lockfileVersion: '6.0'
importers:
  apps/web:
    dependencies:
      local-lib:
        specifier: link:../../vendor/local-lib
        version: link:../../vendor/local-lib
      lib:
        specifier: ^1.0.0
        version: 1.0.0
  apps/other:
    dependencies:
      other:
        specifier: ^3.0.0
        version: 3.0.0
packages:
  /lib@1.0.0:
    resolution: {integrity: sha512-lib}
  /other@3.0.0:
    resolution: {integrity: sha512-other}
"""


class TestTransitiveClosure:
    """Tests for transitive_closure()."""

    def test_npm(self) -> None:
        """app keeps lib and util; other is dropped."""
        doc = json.loads(engine.transitive_closure(_NPM, ['app']))
        assert sorted(doc['packages']) == ['apps/app', 'node_modules/app', 'node_modules/lib', 'node_modules/util']

    def test_pnpm(self) -> None:
        """The same scenario on a pnpm lockfile."""
        doc = yaml.safe_load(engine.transitive_closure(_PNPM, ['apps/app']))
        assert sorted(doc['importers']) == ['apps/app']
        assert sorted(doc['packages']) == ['/lib@1.0.0', '/util@2.0.0']

    def test_accepts_bytes(self) -> None:
        """Byte input gives the same result as text input."""
        assert engine.transitive_closure(_NPM.encode(), ['app']) == engine.transitive_closure(_NPM, ['app'])

    def test_root_workspace_opt_in(self) -> None:
        """The root entry is only kept when '.' is a root."""
        without = json.loads(engine.transitive_closure(_NPM, ['app']))
        with_root = json.loads(engine.transitive_closure(_NPM, ['app', '.']))
        assert '' not in without['packages']
        assert '' in with_root['packages']

    def test_idempotent(self) -> None:
        """Pruning the pruned document again is a no-op."""
        once = engine.transitive_closure(_NPM, ['app'], 'production')
        assert engine.transitive_closure(once, ['app'], 'production') == once

    def test_explicit_dialect(self) -> None:
        """An explicit dialect that does not match the content fails to parse."""
        with pytest.raises(MalformedDocument):
            engine.transitive_closure(_PNPM, ['apps/app'], dialect='npm')

    def test_unknown_root(self) -> None:
        """missing-app is not a workspace."""
        with pytest.raises(UnknownRoot, match="'missing-app'"):
            engine.transitive_closure(_NPM, ['missing-app'])

    def test_dangling_edge(self) -> None:
        """a@1.0.0 → b@9.9.9 without a b@9.9.9 entry is a dangling edge."""
        text = _PNPM.replace('      util: 2.0.0', '      util: 9.9.9')
        with pytest.raises(DanglingEdge) as exc_info:
            engine.transitive_closure(text, ['apps/app'])
        assert str(exc_info.value.target) == 'util@9.9.9'

    def test_malformed(self) -> None:
        """Unparseable input raises MalformedDocument."""
        with pytest.raises(MalformedDocument):
            engine.transitive_closure('{"lockfileVersion": 3', ['app'])

    def test_bad_kinds(self) -> None:
        """Unknown kinds surface as a LockPruneError."""
        with pytest.raises(LockPruneError, match='Unknown dependency kind'):
            engine.transitive_closure(_NPM, ['app'], 'bundled')

    def test_bad_peer_policy(self) -> None:
        """Unknown peer policies surface as a LockPruneError."""
        with pytest.raises(LockPruneError, match='unknown peer policy'):
            engine.transitive_closure(_NPM, ['app'], peer_policy='lenient')

    def test_peers_always_kept(self) -> None:
        """Peers are kept whatever the kinds and policy."""
        doc = json.loads(engine.transitive_closure(_PEERS, ['app'], 'runtime', peer_policy='strict'))
        assert 'node_modules/react' in doc['packages']

    def test_peer_and_dev_overlap(self) -> None:
        """A workspace listing react as peer and dev keeps both sections."""
        doc = json.loads(engine.transitive_closure(_PEER_AND_DEV, ['ui'], 'production'))
        ui = doc['packages']['packages/ui']
        assert ui['peerDependencies'] == {'react': '^18.0.0'}
        assert ui['devDependencies'] == {'react': '18.2.0'}
        assert 'node_modules/react' in doc['packages']

    def test_pnpm_link_to_plain_directory(self) -> None:
        """A link: to a directory outside the importers is kept as written."""
        doc = yaml.safe_load(engine.transitive_closure(_LOCAL_LINK, ['apps/web']))
        assert list(doc['importers']) == ['apps/web']
        assert doc['importers']['apps/web']['dependencies']['local-lib']['version'] == 'link:../../vendor/local-lib'
        assert list(doc['packages']) == ['/lib@1.0.0']


class TestSubgraph:
    """Tests for subgraph()."""

    def test_selection(self) -> None:
        """Only the selected workspaces and packages are kept."""
        doc = json.loads(engine.subgraph(_NPM, ['app'], ['node_modules/lib']))
        assert sorted(doc['packages']) == ['apps/app', 'node_modules/app', 'node_modules/lib']
        assert doc['packages']['node_modules/lib'] == {'version': '1.0.0'}

    def test_missing_peer_reincluded(self) -> None:
        """A selected package's peer comes back by default."""
        doc = json.loads(engine.subgraph(_PEERS, ['app'], ['plugin@1.0.0']))
        assert 'node_modules/react' in doc['packages']

    def test_missing_peer_strict(self) -> None:
        """STRICT reports the missing peer."""
        with pytest.raises(IncompletePeerSet, match="requires peer 'react'"):
            engine.subgraph(_PEERS, ['app'], ['plugin@1.0.0'], peer_policy=PeerPolicy.STRICT)

    def test_unknown_package(self) -> None:
        """Unknown references are rejected."""
        with pytest.raises(UnknownPackage):
            engine.subgraph(_NPM, ['app'], ['node_modules/left-pad'])

    def test_pnpm_by_dep_path(self) -> None:
        """pnpm packages are selected by dependency path."""
        doc = yaml.safe_load(engine.subgraph(_PNPM, ['apps/app'], ['/lib@1.0.0']))
        assert list(doc['packages']) == ['/lib@1.0.0']
        assert 'dependencies' not in doc['packages']['/lib@1.0.0']


class TestWorkspaceTransitiveDeps:
    """Tests for workspace_transitive_deps()."""

    def test_resolves(self) -> None:
        """The named dependencies and everything below them are listed."""
        deps = engine.workspace_transitive_deps(_NPM, 'app', {'lib': '^1.0.0'})
        assert [(d.name, d.version, d.key) for d in deps] == [
            ('lib', '1.0.0', 'node_modules/lib'),
            ('util', '2.0.0', 'node_modules/util'),
        ]

    def test_not_found(self) -> None:
        """Unknown names are reported, not raised."""
        deps = engine.workspace_transitive_deps(_PNPM, 'apps/app', {'left-pad': '^1.3.0'})
        assert [(d.name, d.found) for d in deps] == [('left-pad', False)]

    def test_unknown_workspace(self) -> None:
        """Unknown workspaces raise UnknownRoot."""
        with pytest.raises(UnknownRoot):
            engine.workspace_transitive_deps(_NPM, 'missing-app', {})

    def test_peer_and_dev_overlap(self) -> None:
        """A name declared as peer and dev resolves once."""
        deps = engine.workspace_transitive_deps(_PEER_AND_DEV, 'ui', {'react': '^18.0.0'})
        assert [(d.name, d.version, d.key) for d in deps] == [('react', '18.2.0', 'node_modules/react')]


class TestDataDir:
    """Tests for data_dir()."""

    def test_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """LOCKPRUNE_DATA_DIR wins."""
        monkeypatch.setenv('LOCKPRUNE_DATA_DIR', str(tmp_path))
        assert engine.data_dir() == tmp_path

    @pytest.mark.skipif(sys.platform in ('win32', 'darwin'), reason='XDG layout')
    def test_xdg(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """XDG_DATA_HOME is honored on Linux."""
        monkeypatch.delenv('LOCKPRUNE_DATA_DIR', raising=False)
        monkeypatch.setenv('XDG_DATA_HOME', str(tmp_path))
        assert engine.data_dir() == tmp_path / 'lockprune'

    @pytest.mark.skipif(sys.platform in ('win32', 'darwin'), reason='XDG layout')
    def test_default(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Without overrides the directory is under ~/.local/share."""
        monkeypatch.delenv('LOCKPRUNE_DATA_DIR', raising=False)
        monkeypatch.delenv('XDG_DATA_HOME', raising=False)
        monkeypatch.setenv('HOME', str(tmp_path))
        assert engine.data_dir() == tmp_path / '.local' / 'share' / 'lockprune'

    def test_not_created(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Looking up the directory does not create it."""
        monkeypatch.setenv('LOCKPRUNE_DATA_DIR', str(tmp_path / 'nope'))
        assert not engine.data_dir().exists()
