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

"""Command-line interface.

::

    lockprune prune package-lock.json apps/web --kinds production -o out/package-lock.json
    lockprune subgraph pnpm-lock.yaml --workspace apps/web --package /react@18.2.0
    lockprune deps package-lock.json web react=^18.2.0 next=13.4.0
    lockprune data-dir

Exit codes: ``0`` success, ``1`` lockfile or configuration error (the
message goes to stderr), ``2`` usage error.
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from io import StringIO
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich.text import Text

from lockprune import engine
from lockprune.closure import ResolvedDependency
from lockprune.config import PruneConfig, find_config, load_config, resolve_config
from lockprune.errors import LockPruneError
from lockprune.logging import configure_logging, get_logger

__all__ = [
    'build_parser',
    'format_dependency_table',
    'main',
    'print_dependency_table',
]

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for ``lockprune``."""
    parser = argparse.ArgumentParser(
        prog='lockprune',
        description='Prune npm, pnpm and yarn lockfiles down to the packages a set of workspaces needs.',
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging.')
    verbosity.add_argument('-q', '--quiet', action='store_true', help='Only log warnings and errors.')
    parser.add_argument('--json-log', action='store_true', help='Emit logs as JSON lines.')
    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='Config file (default: nearest lockprune.toml or pyproject.toml with [tool.lockprune]).',
    )

    sub = parser.add_subparsers(dest='command', required=True)

    prune = sub.add_parser('prune', help='Keep only the transitive closure of the given workspaces.')
    prune.add_argument('lockfile', type=Path, help='Lockfile to prune.')
    prune.add_argument('roots', nargs='+', metavar='ROOT', help='Workspace name or path ("." for the root).')
    prune.add_argument('--kinds', default=None, help='"all", "production" or a comma list of kinds.')
    prune.add_argument('--dialect', default=None, help='Lockfile dialect (default: detect).')
    prune.add_argument('--strict-peers', action='store_true', help='Fail instead of re-including missing peers.')
    prune.add_argument('-o', '--output', default=None, help='Write the result here instead of stdout.')

    subgraph = sub.add_parser('subgraph', help='Keep an explicit set of workspaces and packages.')
    subgraph.add_argument('lockfile', type=Path, help='Lockfile to restrict.')
    subgraph.add_argument('--workspace', action='append', default=[], help='Workspace to keep (repeatable).')
    subgraph.add_argument(
        '--package',
        action='append',
        default=[],
        help='name@version or placement key to keep (repeatable).',
    )
    subgraph.add_argument('--dialect', default=None, help='Lockfile dialect (default: detect).')
    subgraph.add_argument('--strict-peers', action='store_true', help='Fail instead of re-including missing peers.')
    subgraph.add_argument('-o', '--output', default=None, help='Write the result here instead of stdout.')

    deps = sub.add_parser('deps', help="List everything a workspace's dependencies pull in.")
    deps.add_argument('lockfile', type=Path, help='Lockfile to read.')
    deps.add_argument('workspace', help='Workspace name or path.')
    deps.add_argument('dependencies', nargs='*', metavar='NAME=RANGE', help='Dependencies to resolve.')
    deps.add_argument('--dialect', default=None, help='Lockfile dialect (default: detect).')

    sub.add_parser('data-dir', help='Print the per-user data directory.')
    return parser


def _parse_requirements(parser: argparse.ArgumentParser, values: Sequence[str]) -> dict[str, str]:
    requirements: dict[str, str] = {}
    for value in values:
        # Scoped names start with '@', so split on the last '='.
        name, sep, spec = value.rpartition('=')
        if not sep or not name:
            parser.error(f'expected NAME=RANGE, got {value!r}')
        requirements[name] = spec
    return requirements


def print_dependency_table(
    dependencies: Sequence[ResolvedDependency],
    console: Console | None = None,
) -> None:
    """Print resolved dependencies with Rich formatting.

    Args:
        dependencies: Output of :func:`lockprune.engine.workspace_transitive_deps`.
        console: Rich :class:`Console` to print to. When ``None``, a
            default ``Console()`` is created.
    """
    if console is None:
        console = Console()

    table = Table(show_header=True, header_style='bold', show_edge=False, pad_edge=False)
    table.add_column('Package', style='bold')
    table.add_column('Version')
    table.add_column('Key', style='dim')
    for dep in dependencies:
        version = Text(dep.version) if dep.found else Text(f'{dep.version} (not in lockfile)', style='red')
        table.add_row(dep.name, version, dep.key if dep.found else '')
    console.print(table)

    missing = sum(1 for d in dependencies if not d.found)
    found = len(dependencies) - missing
    if missing:
        console.print(f'\n{found} package(s) resolved, [bold red]{missing} not found[/].')
    else:
        console.print(f'\n[bold green]{found} package(s) resolved.[/]')


def format_dependency_table(dependencies: Sequence[ResolvedDependency], *, color: bool = False) -> str:
    """Capture :func:`print_dependency_table` output as a string."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=color, width=120)
    print_dependency_table(dependencies, console=console)
    return buf.getvalue().rstrip('\n')


def _write(data: bytes, output: str) -> None:
    if output:
        Path(output).write_bytes(data)
        logger.info('wrote_lockfile', path=output, size=len(data))
    else:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()


def _load(args: argparse.Namespace) -> PruneConfig:
    path = args.config if args.config is not None else find_config(Path.cwd())
    if path is None:
        return PruneConfig()
    return load_config(path)


def _run(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    if args.command == 'data-dir':
        sys.stdout.write(f'{engine.data_dir()}\n')
        return 0

    base = _load(args)
    contents = args.lockfile.read_bytes()

    if args.command == 'deps':
        config = resolve_config(base, dialect=args.dialect)
        requirements = _parse_requirements(parser, args.dependencies)
        resolved = engine.workspace_transitive_deps(
            contents,
            args.workspace,
            requirements,
            dialect=config.dialect,
        )
        print_dependency_table(resolved)
        return 0

    config = resolve_config(
        base,
        dialect=args.dialect,
        kinds=getattr(args, 'kinds', None),
        strict_peers=args.strict_peers,
        output=args.output,
    )
    if args.command == 'prune':
        result = engine.transitive_closure(
            contents,
            args.roots,
            config.kinds,
            dialect=config.dialect,
            peer_policy=config.peer_policy,
        )
    else:
        if not args.workspace and not args.package:
            parser.error('subgraph needs at least one --workspace or --package')
        result = engine.subgraph(
            contents,
            args.workspace,
            args.package,
            dialect=config.dialect,
            peer_policy=config.peer_policy,
        )
    _write(result, config.output)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return its exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_log=args.json_log)

    err = Console(stderr=True, soft_wrap=True)
    try:
        return _run(args, parser)
    except LockPruneError as exc:
        err.print(Text.assemble(('error', 'bold red'), f': {exc}'))
        return 1
    except OSError as exc:
        err.print(Text.assemble(('error', 'bold red'), f': {exc.strerror or exc}: {exc.filename}'))
        return 1


if __name__ == '__main__':
    sys.exit(main())
