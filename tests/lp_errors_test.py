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

"""Tests for lockprune.errors."""

from __future__ import annotations

import pytest

from lockprune._types import PackageId
from lockprune.errors import (
    ConfigError,
    DanglingEdge,
    IncompletePeerSet,
    LockPruneError,
    MalformedDocument,
    UnknownPackage,
    UnknownRoot,
    UnrepresentableModel,
)

_A = PackageId('a', '1.0.0')
_B = PackageId('b', '9.9.9')


class TestHierarchy:
    """Every error is catchable as LockPruneError."""

    @pytest.mark.parametrize(
        'exc',
        [
            ConfigError('bad'),
            MalformedDocument('bad'),
            DanglingEdge(_A, 'b', _B),
            UnknownRoot('x'),
            UnknownPackage('x@1'),
            IncompletePeerSet(_A, 'react', _B),
            UnrepresentableModel('bad'),
        ],
    )
    def test_base_class(self, exc: LockPruneError) -> None:
        """Subclasses derive from LockPruneError."""
        assert isinstance(exc, LockPruneError)


class TestMalformedDocument:
    """Tests for MalformedDocument messages."""

    def test_package_and_field(self) -> None:
        """Both locations are named."""
        exc = MalformedDocument('missing version', package='node_modules/a', field='version')
        assert str(exc) == "Malformed lockfile: missing version (package 'node_modules/a', field 'version')"
        assert exc.package == 'node_modules/a'
        assert exc.field == 'version'

    def test_field_only(self) -> None:
        """A field without a package is still reported."""
        assert str(MalformedDocument('absent', field='packages')) == "Malformed lockfile: absent (field 'packages')"

    def test_bare(self) -> None:
        """No location means no suffix."""
        assert str(MalformedDocument('not JSON')) == 'Malformed lockfile: not JSON'


class TestDanglingEdge:
    """Tests for DanglingEdge messages."""

    def test_missing_record(self) -> None:
        """A target without a node names both ends."""
        exc = DanglingEdge(_A, 'b', _B)
        assert 'a@1.0.0 depends on b@9.9.9' in str(exc)
        assert exc.target == _B

    def test_no_resolution(self) -> None:
        """A required edge without any resolution says so."""
        exc = DanglingEdge(_A, 'b', None)
        assert 'records no resolution' in str(exc)
        assert exc.target is None


class TestUnknownRoot:
    """Tests for UnknownRoot messages."""

    def test_lists_known_workspaces(self) -> None:
        """Known workspaces are listed sorted."""
        exc = UnknownRoot('missing-app', ['web', 'api'])
        assert exc.available == ['api', 'web']
        assert str(exc) == "Unknown root workspace 'missing-app' (known workspaces: api, web)"

    def test_no_workspaces(self) -> None:
        """Without workspaces there is no hint."""
        assert str(UnknownRoot('x')) == "Unknown root workspace 'x'"


class TestIncompletePeerSet:
    """Tests for IncompletePeerSet."""

    def test_attributes(self) -> None:
        """The package, peer name and target are kept."""
        exc = IncompletePeerSet(_A, 'react', _B)
        assert (exc.package, exc.peer, exc.target) == (_A, 'react', _B)
        assert str(exc).startswith("Incomplete peer set: a@1.0.0 requires peer 'react'")


class TestUnrepresentableModel:
    """Tests for UnrepresentableModel."""

    def test_package_suffix(self) -> None:
        """The package is appended when given."""
        exc = UnrepresentableModel('no placement', package='a@1.0.0')
        assert str(exc) == "Cannot render lockfile: no placement (package 'a@1.0.0')"
