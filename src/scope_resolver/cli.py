"""Typer CLI entry point for scope-resolver."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from scope_resolver.config import ScopeConfig
from scope_resolver.exceptions import ScopeResolverError
from scope_resolver.models import Ga
from scope_resolver.patterns import ScopeSet
from scope_resolver.source_tree import ActiveProfiles, ModuleGraph, ProfileSelector
from scope_resolver.visualize import build_module_tree
from scope_resolver.walker import ArtifactCollector, ScopeSetWalker, compute_subtrees

app = typer.Typer(
    add_completion=False,
    help="Resolve which Maven modules and artifacts belong to a build scope.",
)
console = Console()

IncludeOption = Annotated[
    list[str] | None,
    typer.Option("--include", "-i", help="Include pattern groupId[:artifactId[:version]]; repeatable."),
]
ExcludeOption = Annotated[
    list[str] | None,
    typer.Option("--exclude", "-e", help="Exclude pattern groupId[:artifactId[:version]]; repeatable."),
]
EncodingOption = Annotated[str | None, typer.Option("--encoding", help="pom.xml encoding.")]
ProfilesOption = Annotated[
    list[str] | None,
    typer.Option(
        "--profiles",
        "-P",
        help="Active profile ids, comma-separated; repeatable. Default: SCOPE_PROFILES, else every profile.",
    ),
]


@app.callback()
def main_options(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug messages.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _config() -> ScopeConfig:
    config = ScopeConfig.from_env()
    config.validate()
    return config


def _scope_set(
    config: ScopeConfig,
    include: list[str] | None,
    exclude: list[str] | None,
    exclude_snapshots: bool = False,
) -> ScopeSet:
    if not include and not exclude and not exclude_snapshots:
        return config.scope_set()
    return ScopeSet.from_strings(
        include or config.includes,
        exclude or config.excludes,
        exclude_snapshots=exclude_snapshots or config.exclude_snapshots,
    )


def _fail(exc: Exception) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
    return typer.Exit(code=1)


@app.command()
def subtrees(
    version: Annotated[str, typer.Argument(help="The artifact version to look for.")],
    include: IncludeOption = None,
    exclude: ExcludeOption = None,
) -> None:
    """Print the local repository subtrees that have to be scanned."""
    try:
        scope_set = _scope_set(_config(), include, exclude)
        for subtree in compute_subtrees(scope_set, version):
            console.print(escape(subtree.as_posix()))
    except (ScopeResolverError, ValueError) as exc:
        raise _fail(exc) from None


@app.command()
def scan(
    version: Annotated[str, typer.Argument(help="The artifact version to look for.")],
    repo: Annotated[
        Path | None,
        typer.Option("--repo", help="Local Maven repository (default: SCOPE_LOCAL_REPOSITORY)."),
    ] = None,
    include: IncludeOption = None,
    exclude: ExcludeOption = None,
    exclude_snapshots: Annotated[
        bool, typer.Option("--exclude-snapshots", help="Exclude *-SNAPSHOT versions.")
    ] = False,
) -> None:
    """List the artifacts of VERSION in the local repository that belong to the scope."""
    try:
        config = _config()
        scope_set = _scope_set(config, include, exclude, exclude_snapshots)
        repo_root = repo or config.local_repository
        collector = ArtifactCollector()
        ScopeSetWalker(repo_root, scope_set, version).walk(collector)

        table = Table(title=f"Artifacts of version {escape(version)} in {escape(str(repo_root))}")
        table.add_column("groupId")
        table.add_column("artifactId")
        table.add_column("type")
        table.add_column("classifier", style="dim")
        table.add_column("path", style="dim")
        for locator in collector.sorted():
            table.add_row(
                escape(locator.group_id),
                escape(locator.artifact_id),
                escape(locator.type),
                escape(locator.classifier or ""),
                escape(str(locator.path.relative_to(repo_root))),
            )
        console.print(table)
        console.print(f"[green]Found[/green] {len(collector.locators)} artifact(s).")
    except (ScopeResolverError, ValueError) as exc:
        raise _fail(exc) from None


def _profiles(config: ScopeConfig, profiles: list[str] | None) -> ProfileSelector:
    if profiles is None:
        return config.active_profiles()
    ids = [p.strip() for value in profiles for p in value.split(",") if p.strip()]
    return ActiveProfiles.of(*ids)


def _closure(graph: ModuleGraph, seeds: list[str], active: ProfileSelector) -> list[Ga]:
    seed_gas = [Ga.parse(s) for s in seeds]
    for ga in seed_gas:
        # fail early on typos; closure() itself ignores foreign seeds
        graph.module(ga)
    return graph.closure(seed_gas, active)


@app.command()
def closure(
    root_pom: Annotated[Path, typer.Argument(help="Path to the root pom.xml of the source tree.")],
    seeds: Annotated[list[str], typer.Argument(help="Modules to build, as groupId:artifactId.")],
    profiles: ProfilesOption = None,
    encoding: EncodingOption = None,
) -> None:
    """Print the modules required to build SEEDS."""
    try:
        config = _config()
        graph = ModuleGraph.of(root_pom, encoding or config.encoding)
        for ga in _closure(graph, seeds, _profiles(config, profiles)):
            console.print(escape(ga.compact()))
    except (ScopeResolverError, ValueError) as exc:
        raise _fail(exc) from None


@app.command()
def prune(
    root_pom: Annotated[Path, typer.Argument(help="Path to the root pom.xml of the source tree.")],
    seeds: Annotated[list[str], typer.Argument(help="Modules to build, as groupId:artifactId.")],
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Only print what would be unlinked.")] = False,
    profiles: ProfilesOption = None,
    encoding: EncodingOption = None,
) -> None:
    """Comment out every <module> not required to build SEEDS."""
    try:
        config = _config()
        active = _profiles(config, profiles)
        graph = ModuleGraph.of(root_pom, encoding or config.encoding)
        needed = _closure(graph, seeds, active)
        if dry_run:
            removals = graph.unneeded_modules(needed, active)
        else:
            removals = graph.prune_to_scope(needed, active)

        table = Table(title="Unlinked modules" + (" (dry run)" if dry_run else ""))
        table.add_column("pom.xml")
        table.add_column("Removed <module>")
        for pom_path, child_paths in removals.items():
            for child_path in child_paths:
                table.add_row(escape(pom_path), escape(child_path))
        console.print(table)
        if not removals:
            console.print("[dim]Nothing to unlink.[/dim]")
    except (ScopeResolverError, ValueError) as exc:
        raise _fail(exc) from None


@app.command()
def tree(
    root_pom: Annotated[Path, typer.Argument(help="Path to the root pom.xml of the source tree.")],
    seeds: Annotated[
        list[str] | None, typer.Argument(help="Optional modules to highlight with their closure.")
    ] = None,
    profiles: ProfilesOption = None,
    encoding: EncodingOption = None,
) -> None:
    """Print the module hierarchy of a source tree."""
    try:
        config = _config()
        active = _profiles(config, profiles)
        graph = ModuleGraph.of(root_pom, encoding or config.encoding)
        needed = set(_closure(graph, seeds, active)) if seeds else None
        console.print(build_module_tree(graph, needed, active))
    except (ScopeResolverError, ValueError) as exc:
        raise _fail(exc) from None


@app.command()
def dependencies(
    root_pom: Annotated[Path, typer.Argument(help="Path to the root pom.xml of the source tree.")],
    include: IncludeOption = None,
    exclude: ExcludeOption = None,
    profiles: ProfilesOption = None,
    encoding: EncodingOption = None,
) -> None:
    """List the parents, dependencies and plugins of the tree that belong to the scope."""
    try:
        config = _config()
        graph = ModuleGraph.of(root_pom, encoding or config.encoding)
        scope_set = _scope_set(config, include, exclude)
        for ga in graph.filter_dependencies(scope_set, _profiles(config, profiles)):
            console.print(escape(ga.compact()))
    except (ScopeResolverError, ValueError) as exc:
        raise _fail(exc) from None


def main() -> None:
    """Console-script entry point."""
    app()
