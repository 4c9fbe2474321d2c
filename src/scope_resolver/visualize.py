"""Rich rendering utilities for source trees and removal maps."""

from __future__ import annotations

from collections.abc import Collection

from rich.markup import escape
from rich.tree import Tree

from scope_resolver.source_tree import ALL_PROFILES, Module, ModuleGraph, ProfileSelector


def build_module_tree(
    graph: ModuleGraph,
    closure: Collection | None = None,
    active: ProfileSelector = ALL_PROFILES,
) -> Tree:
    """Build a Rich Tree following the `<modules>` of the source tree.

    Args:
        graph: The source tree to render.
        closure: Optional module identities; modules outside of it are dimmed.
        active: Selects the profiles whose `<modules>` are followed.

    Returns:
        A Rich Tree object for rendering.
    """
    root_module = graph.root_module
    root = Tree(_label(root_module, closure))
    seen = {root_module.pom_path}

    def add_children(branch: Tree, module: Module) -> None:
        for child_path in module.active_children(active):
            child = graph.modules_by_path[child_path]
            node = branch.add(_label(child, closure))
            if child_path not in seen:
                seen.add(child_path)
                add_children(node, child)

    add_children(root, root_module)
    return root


def _label(module: Module, closure: Collection | None) -> str:
    ga = escape(module.ga.compact())
    path = escape(module.pom_path)
    if closure is not None and module.ga not in closure:
        return f"[strike dim]{ga}[/strike dim] [dim]{path}[/dim]"
    return f"[bold]{ga}[/bold] [dim]{path}[/dim]"
