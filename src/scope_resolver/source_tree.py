"""A Maven module hierarchy read from pom.xml files.

Each pom.xml is stream-parsed with lxml into an immutable `Module`; the
modules reachable through `<module>` elements from a root pom.xml form a
`ModuleGraph`. The graph answers which modules have to be built so that a
given set of modules can be built, and it can rewrite the pom.xml files so
that nothing else stays in the reactor.

Two parent relations are kept apart:
    - the declared parent, taken from the `<parent>` element;
    - the structural parent, the module whose `<modules>` lists the child.
They differ for reactors where the aggregator is not the Maven parent.

The content of a pom.xml is split into profiles. The profile-less part is
always active; which `<profile>` elements count is decided by a profile
selector such as `ActiveProfiles.of("release")`. By default all of them do.
"""

from __future__ import annotations

import logging
import os
import posixpath
import re
import shutil
import tempfile
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import networkx as nx
from lxml import etree
from pydantic import BaseModel, ConfigDict

from scope_resolver.exceptions import (
    DescriptorError,
    DescriptorIOError,
    MalformedDescriptorError,
    ModuleLookupError,
    ScopeResolverError,
)
from scope_resolver.models import Ga
from scope_resolver.patterns import ScopeSet


logger = logging.getLogger(__name__)


DEFAULT_ENCODING = "utf-8"
ROOT_POM = "pom.xml"
DEFAULT_PLUGIN_GROUP_ID = "org.apache.maven.plugins"
DEFAULT_PROFILE_ID = "default"

STRUCTURAL_PARENT = "structural-parent"
DECLARED_PARENT = "declared-parent"
DEPENDENCY = "dependency"
PLUGIN = "plugin"

_COORDINATES = ("groupId", "artifactId", "version")
_PLACEHOLDER_RE = re.compile(r"\$\{([^}]+)\}")
_MODULE_XPATH = "//*[local-name()='modules']/*[local-name()='module']"
# XML declaration, whitespace, comments, PIs and a DOCTYPE with an optional internal subset
_PROLOG_RE = re.compile(
    r"\ufeff?(?:\s+|<\?.*?\?>|<!--.*?-->"
    r"|<!DOCTYPE(?:[^\[>\"']|\"[^\"]*\"|'[^']*')*(?:\[.*?\]\s*)?>)*",
    re.DOTALL,
)


class Profile(BaseModel):
    """The content of one `<profile>`, or of the profile-less part when `id` is None.

    `children` are pom.xml paths relative to the root directory of the tree.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    children: tuple[str, ...] = ()
    dependencies: tuple[Ga, ...] = ()
    managed_dependencies: tuple[Ga, ...] = ()
    plugins: tuple[Ga, ...] = ()
    managed_plugins: tuple[Ga, ...] = ()


ProfileSelector = Callable[[Profile], bool]


@dataclass(frozen=True)
class ActiveProfiles:
    """Selects profiles by id, like `mvn -P a,b`.

    The profile-less part of a pom.xml is always selected. `ids=None`
    selects every profile.
    """

    ids: frozenset[str] | None = None

    @classmethod
    def all(cls) -> "ActiveProfiles":
        return cls()

    @classmethod
    def of(cls, *ids: str) -> "ActiveProfiles":
        return cls(frozenset(ids))

    def __call__(self, profile: Profile) -> bool:
        return profile.id is None or self.ids is None or profile.id in self.ids


ALL_PROFILES = ActiveProfiles.all()


class Module(BaseModel):
    """One pom.xml of the source tree.

    `pom_path` is relative to the root directory of the tree, always with `/`
    separators. `profiles` starts with the profile-less part of the file.
    The `children`, `dependencies`, ... properties merge all profiles.
    """

    model_config = ConfigDict(frozen=True)

    ga: Ga
    version: str | None = None
    parent_ga: Ga | None = None
    parent_version: str | None = None
    pom_path: str
    profiles: tuple[Profile, ...] = ()

    def active_profiles(self, active: ProfileSelector = ALL_PROFILES) -> list[Profile]:
        return [p for p in self.profiles if active(p)]

    def _merged(self, name: str, active: ProfileSelector) -> tuple:
        return tuple(dict.fromkeys(v for p in self.active_profiles(active) for v in getattr(p, name)))

    def active_children(self, active: ProfileSelector = ALL_PROFILES) -> tuple[str, ...]:
        return self._merged("children", active)

    def active_dependencies(self, active: ProfileSelector = ALL_PROFILES) -> tuple[Ga, ...]:
        return self._merged("dependencies", active)

    def active_plugins(self, active: ProfileSelector = ALL_PROFILES) -> tuple[Ga, ...]:
        return self._merged("plugins", active)

    @property
    def children(self) -> tuple[str, ...]:
        return self.active_children()

    @property
    def dependencies(self) -> tuple[Ga, ...]:
        return self.active_dependencies()

    @property
    def managed_dependencies(self) -> tuple[Ga, ...]:
        return self._merged("managed_dependencies", ALL_PROFILES)

    @property
    def plugins(self) -> tuple[Ga, ...]:
        return self.active_plugins()

    @property
    def managed_plugins(self) -> tuple[Ga, ...]:
        return self._merged("managed_plugins", ALL_PROFILES)

    def has_child(self, pom_path: str, active: ProfileSelector = ALL_PROFILES) -> bool:
        return any(pom_path in p.children for p in self.active_profiles(active))


@dataclass
class _Reference:
    """A dependency or plugin whose coordinates are still being read."""

    kind: str
    group_id: str | None = None
    artifact_id: str | None = None

    def set(self, name: str, text: str) -> None:
        if name == "groupId":
            self.group_id = text
        elif name == "artifactId":
            self.artifact_id = text


@dataclass
class _ProfileContent:
    id: str | None
    children: list[str] = field(default_factory=list)
    references: list[_Reference] = field(default_factory=list)


def _resolve_placeholders(value: str, props: Mapping[str, str]) -> str:
    """Resolve ${...} placeholders using provided properties.

    Unknown placeholders are preserved as-is.
    """
    current = value
    for _ in range(5):
        nxt = _PLACEHOLDER_RE.sub(lambda m: props.get(m.group(1)) or m.group(0), current)
        if nxt == current:
            break
        current = nxt
    return current


def _child_pom_path(base_dir: str, module_text: str) -> str:
    return posixpath.normpath(posixpath.join(base_dir, module_text, ROOT_POM))


def _build_profile(content: _ProfileContent, props: Mapping[str, str]) -> Profile:
    refs: dict[str, list[Ga]] = {
        "dependencies": [],
        "managed_dependencies": [],
        "plugins": [],
        "managed_plugins": [],
    }
    for ref in content.references:
        if not ref.group_id or not ref.artifact_id:
            continue
        ga = Ga(
            group_id=_resolve_placeholders(ref.group_id, props),
            artifact_id=_resolve_placeholders(ref.artifact_id, props),
        )
        if ga not in refs[ref.kind]:
            refs[ref.kind].append(ga)
    return Profile(
        id=content.id,
        children=tuple(dict.fromkeys(content.children)),
        **{kind: tuple(gas) for kind, gas in refs.items()},
    )


def parse_module(root_directory: Path, pom_path: str, encoding: str = DEFAULT_ENCODING) -> Module:
    """Stream-parse one pom.xml.

    Args:
        root_directory: Root directory of the source tree.
        pom_path: Path of the pom.xml relative to `root_directory`.
        encoding: Encoding used to read the file.

    Raises:
        DescriptorIOError: If the file does not exist or cannot be read.
        MalformedDescriptorError: If the XML is not well-formed or the
            project/parent coordinates are inconsistent.

    Returns:
        The parsed `Module`.
    """
    descriptor = Path(root_directory) / pom_path
    if not descriptor.is_file():
        raise DescriptorIOError("pom.xml not found", descriptor)

    base_dir = posixpath.dirname(pom_path)
    own: dict[str, str] = {}
    parent: dict[str, str] = {}
    props: dict[str, str] = {}
    implicit = _ProfileContent(None)
    contents = [implicit]
    current = implicit
    dependency: _Reference | None = None
    plugin: _Reference | None = None
    stack: list[str] = []

    try:
        events = etree.iterparse(
            str(descriptor),
            events=("start", "end"),
            encoding=encoding,
            remove_comments=True,
            remove_pis=True,
        )
        for event, elem in events:
            name = etree.QName(elem).localname
            if event == "start":
                if name == "dependency" and stack[-1:] == ["dependencies"]:
                    managed = stack[-2:-1] == ["dependencyManagement"]
                    dependency = _Reference("managed_dependencies" if managed else "dependencies")
                elif name == "plugin" and stack[-1:] == ["plugins"]:
                    managed = stack[-2:-1] == ["pluginManagement"]
                    plugin = _Reference(
                        "managed_plugins" if managed else "plugins",
                        group_id=DEFAULT_PLUGIN_GROUP_ID,
                    )
                elif name == "profile" and stack == ["project", "profiles"]:
                    current = _ProfileContent(DEFAULT_PROFILE_ID)
                    contents.append(current)
                stack.append(name)
                continue

            stack.pop()
            context = stack[-1] if stack else None
            text = (elem.text or "").strip()
            if name in _COORDINATES:
                if stack == ["project"]:
                    own[name] = text
                elif stack == ["project", "parent"]:
                    parent[name] = text
                elif context == "dependency" and dependency is not None:
                    dependency.set(name, text)
                elif context == "plugin" and plugin is not None:
                    plugin.set(name, text)
            elif name == "module" and context == "modules":
                if text:
                    current.children.append(_child_pom_path(base_dir, text))
            elif name == "id" and stack == ["project", "profiles", "profile"]:
                if text:
                    current.id = text
            elif name == "profile" and stack == ["project", "profiles"]:
                current = implicit
            elif context == "properties" and len(stack) == 2:
                props[name] = text
            elif name == "dependency" and dependency is not None and context == "dependencies":
                current.references.append(dependency)
                dependency = None
            elif name == "plugin" and plugin is not None and context == "plugins":
                current.references.append(plugin)
                plugin = None
    except etree.XMLSyntaxError as exc:
        raise MalformedDescriptorError("Failed to parse pom.xml", descriptor) from exc
    except OSError as exc:
        raise DescriptorIOError("Failed to read pom.xml", descriptor) from exc

    parent_ga = None
    parent_group = parent.get("groupId") or None
    parent_artifact = parent.get("artifactId") or None
    if (parent_group is None) != (parent_artifact is None):
        raise MalformedDescriptorError(
            f"<parent> must declare both or none of groupId [{parent_group}] and artifactId [{parent_artifact}]",
            descriptor,
        )
    if parent_group is not None and parent_artifact is not None:
        parent_ga = Ga(group_id=parent_group, artifact_id=parent_artifact)

    artifact_id = own.get("artifactId") or None
    group_id = own.get("groupId") or parent_group
    if artifact_id is None:
        raise MalformedDescriptorError("Missing required <artifactId>", descriptor)
    if group_id is None:
        raise MalformedDescriptorError("Missing required <groupId> (or parent <groupId>)", descriptor)
    version = own.get("version") or parent.get("version") or None

    builtins = {
        "project.groupId": group_id,
        "project.artifactId": artifact_id,
        "pom.groupId": group_id,
        "pom.artifactId": artifact_id,
    }
    if parent_ga is not None:
        builtins["project.parent.groupId"] = parent_ga.group_id
        builtins["project.parent.artifactId"] = parent_ga.artifact_id
    merged_props = {**props, **builtins}

    module = Module(
        ga=Ga(group_id=_resolve_placeholders(group_id, merged_props), artifact_id=artifact_id),
        version=version,
        parent_ga=parent_ga,
        parent_version=parent.get("version") or None,
        pom_path=pom_path,
        profiles=tuple(_build_profile(c, merged_props) for c in contents),
    )
    logger.debug("Parsed %s as %s", pom_path, module.ga)
    return module


class ModuleGraphBuilder:
    """Discovers the modules of a tree starting from its root pom.xml.

    Children listed in any profile are discovered.
    """

    def __init__(self, root_directory: Path, encoding: str = DEFAULT_ENCODING) -> None:
        self.root_directory = Path(root_directory)
        self.encoding = encoding
        self.modules_by_path: dict[str, Module] | None = {}

    def pom_xml(self, pom_xml: Path) -> "ModuleGraphBuilder":
        """Parse `pom_xml` and, transitively, every child it references."""
        if self.modules_by_path is None:
            raise ScopeResolverError("ModuleGraphBuilder cannot be used after build()")
        pom_path = Path(pom_xml)
        if pom_path.is_absolute():
            pom_path = pom_path.relative_to(self.root_directory)
        pending = [pom_path.as_posix()]
        while pending:
            path = pending.pop()
            if path in self.modules_by_path:
                continue
            module = parse_module(self.root_directory, path, self.encoding)
            self.modules_by_path[path] = module
            pending.extend(c for c in reversed(module.children) if c not in self.modules_by_path)
        return self

    def build(self) -> "ModuleGraph":
        if self.modules_by_path is None:
            raise ScopeResolverError("ModuleGraphBuilder cannot be used after build()")
        modules, self.modules_by_path = self.modules_by_path, None
        return ModuleGraph(self.root_directory, self.encoding, modules)


class ModuleGraph:
    """An immutable view of the modules of one source tree.

    Every query taking `active` only considers the profiles it selects.
    """

    def __init__(self, root_directory: Path, encoding: str, modules_by_path: Mapping[str, Module]) -> None:
        self.root_directory = Path(root_directory)
        self.encoding = encoding

        by_ga: dict[Ga, Module] = {}
        for module in modules_by_path.values():
            if module.ga in by_ga:
                logger.warning(
                    "Module %s defined in both %s and %s; keeping the first",
                    module.ga,
                    by_ga[module.ga].pom_path,
                    module.pom_path,
                )
            else:
                by_ga[module.ga] = module

        self._by_path = MappingProxyType(dict(modules_by_path))
        self._by_ga = MappingProxyType(by_ga)
        self._graphs: dict[ProfileSelector, nx.DiGraph] = {}

    @classmethod
    def of(cls, root_pom: Path, encoding: str = DEFAULT_ENCODING) -> "ModuleGraph":
        """Read the tree whose root module is described by `root_pom`."""
        root_pom = Path(root_pom).absolute()
        return ModuleGraphBuilder(root_pom.parent, encoding).pom_xml(root_pom).build()

    @property
    def modules_by_path(self) -> Mapping[str, Module]:
        return self._by_path

    @property
    def modules_by_ga(self) -> Mapping[Ga, Module]:
        return self._by_ga

    @property
    def root_module(self) -> Module:
        """The module whose pom.xml the tree was read from."""
        return next(iter(self._by_path.values()))

    @property
    def requirement_graph(self) -> nx.DiGraph:
        """The requirement graph with every profile active."""
        return self.requirement_graph_for(ALL_PROFILES)

    def requirement_graph_for(self, active: ProfileSelector) -> nx.DiGraph:
        """A -> B means "building A requires B to be in the reactor".

        Edges carry a `kinds` attribute, a set of `structural-parent`,
        `declared-parent`, `dependency` and `plugin`.
        """
        graph = self._graphs.get(active)
        if graph is None:
            graph = self._graphs[active] = self._requirement_graph(active)
        return graph

    def module(self, ga: Ga) -> Module:
        try:
            return self._by_ga[ga]
        except KeyError:
            raise ModuleLookupError(ga, self.root_directory) from None

    def descriptor_path(self, ga: Ga) -> Path:
        return self.root_directory / self.module(ga).pom_path

    def declared_parent(self, module: Module) -> Module | None:
        if module.parent_ga is None:
            return None
        return self._by_ga.get(module.parent_ga)

    def structural_parent(self, module: Module, active: ProfileSelector = ALL_PROFILES) -> Module | None:
        return self._structural_parent(module, active, self._listed_by(active))

    def _listed_by(self, active: ProfileSelector) -> dict[str, Module]:
        listed_by: dict[str, Module] = {}
        for module in self._by_ga.values():
            for child in module.active_children(active):
                listed_by.setdefault(child, module)
        return listed_by

    def _structural_parent(
        self, module: Module, active: ProfileSelector, listed_by: Mapping[str, Module]
    ) -> Module | None:
        declared = self.declared_parent(module)
        if declared is not None and declared.has_child(module.pom_path, active):
            return declared
        return listed_by.get(module.pom_path)

    def _requirement_graph(self, active: ProfileSelector) -> nx.DiGraph:
        g = nx.DiGraph()
        for module in self._by_ga.values():
            g.add_node(module.ga, pom_path=module.pom_path)

        listed_by = self._listed_by(active)
        for module in self._by_ga.values():
            for kind, target in self._requirements(module, active, listed_by):
                if target == module.ga or not g.has_node(target):
                    continue
                if g.has_edge(module.ga, target):
                    g.edges[module.ga, target]["kinds"].add(kind)
                else:
                    g.add_edge(module.ga, target, kinds={kind})
        return g

    def _requirements(
        self, module: Module, active: ProfileSelector, listed_by: Mapping[str, Module]
    ) -> Iterator[tuple[str, Ga]]:
        # the order drives the order of closure()
        structural = self._structural_parent(module, active, listed_by)
        if structural is not None:
            yield STRUCTURAL_PARENT, structural.ga
        if module.parent_ga is not None:
            yield DECLARED_PARENT, module.parent_ga
        for ga in module.active_dependencies(active):
            yield DEPENDENCY, ga
        for ga in module.active_plugins(active):
            yield PLUGIN, ga

    def closure(self, seeds: Iterable[Ga], active: ProfileSelector = ALL_PROFILES) -> list[Ga]:
        """Return the seeds and every in-tree module needed to build them.

        A module needs its structural and declared parents (transitively),
        its dependencies and its build plugins. Seeds and references that
        are not part of this tree are ignored. The result is in discovery
        order.
        """
        graph = self.requirement_graph_for(active)
        result: dict[Ga, None] = {}
        for seed in seeds:
            if seed in result or not graph.has_node(seed):
                continue
            for ga in nx.dfs_preorder_nodes(graph, seed):
                result.setdefault(ga, None)
        logger.debug("Closure of %d module(s) in %s", len(result), self.root_directory)
        return list(result)

    def filter_dependencies(self, scope_set: ScopeSet, active: ProfileSelector = ALL_PROFILES) -> list[Ga]:
        """Return the parents, dependencies and plugins used in this tree that belong to `scope_set`.

        Versions are not considered. The result is sorted and free of duplicates.
        """
        found: set[Ga] = set()
        for module in self._by_ga.values():
            candidates = [*module.active_dependencies(active), *module.active_plugins(active)]
            if module.parent_ga is not None:
                candidates.append(module.parent_ga)
            found.update(ga for ga in candidates if scope_set.contains_ga(ga.group_id, ga.artifact_id))
        return sorted(found)

    def unneeded_modules(
        self, closure: Iterable[Ga], active: ProfileSelector = ALL_PROFILES
    ) -> dict[str, list[str]]:
        """Map pom.xml paths to the child pom.xml paths they should stop listing.

        Children outside of `closure` are not descended into: their whole
        subtree leaves the reactor. Children listed only by inactive
        profiles are left alone.
        """
        keep = set(closure)
        removals: dict[str, list[str]] = {}
        seen: set[str] = set()

        def visit(module: Module) -> None:
            seen.add(module.pom_path)
            for child_path in module.active_children(active):
                child = self._by_path[child_path]
                if child.ga not in keep:
                    removals.setdefault(module.pom_path, []).append(child_path)
                elif child_path not in seen:
                    visit(child)

        visit(self.root_module)
        return removals

    def prune_to_scope(
        self, closure: Iterable[Ga], active: ProfileSelector = ALL_PROFILES
    ) -> dict[str, list[str]]:
        """Edit the pom.xml files so that only modules in `closure` get built.

        Every `<module>` element pointing to a removed child is replaced by a
        comment, in all profiles of the file. All edits are prepared and
        checked before the first file is written; each file is then replaced
        through a temporary file in the same directory.

        Returns:
            The removals applied, as returned by `unneeded_modules`.
        """
        removals = self.unneeded_modules(closure, active)
        edited = {
            pom_path: self._unlinked_text(pom_path, set(child_paths))
            for pom_path, child_paths in removals.items()
        }
        for pom_path, content in edited.items():
            _write_atomically(self.root_directory / pom_path, content, self.encoding)
            logger.info("Rewrote %s", pom_path)
        return removals

    def _unlinked_text(self, pom_path: str, child_paths: set[str]) -> str:
        descriptor = self.root_directory / pom_path
        parser = etree.XMLParser(
            encoding=self.encoding,
            resolve_entities=False,
            no_network=True,
            strip_cdata=False,
        )
        try:
            original = descriptor.read_bytes().decode(self.encoding)
            root = etree.fromstring(original.encode(self.encoding), parser=parser)
        except etree.XMLSyntaxError as exc:
            raise MalformedDescriptorError("Failed to parse pom.xml", descriptor) from exc
        except (OSError, UnicodeError) as exc:
            raise DescriptorIOError("Failed to read pom.xml", descriptor) from exc

        base_dir = posixpath.dirname(pom_path)
        for node in root.xpath(_MODULE_XPATH):
            text = (node.text or "").strip()
            if _child_pom_path(base_dir, text) not in child_paths:
                continue
            try:
                comment = etree.Comment(_removal_comment(text))
            except ValueError as exc:
                raise DescriptorError(f"Cannot comment out <module>{text}</module>", descriptor) from exc
            comment.tail = node.tail
            node.getparent().replace(node, comment)
            logger.info("Unlinking module %s from %s", text, pom_path)

        body = etree.tostring(root, encoding="unicode")
        if "\r\n" in original:
            # the parser normalizes line ends to \n
            body = body.replace("\n", "\r\n")
        prolog, epilog = _prolog_and_epilog(original, root, descriptor)
        content = prolog + body + epilog
        try:
            etree.fromstring(content.encode(self.encoding), parser=parser)
        except (etree.XMLSyntaxError, UnicodeError) as exc:
            raise DescriptorError("Refusing to write a pom.xml that does not parse", descriptor) from exc
        return content


def _removal_comment(module_text: str) -> str:
    # "--" is not allowed inside an XML comment
    text = f" <module>{module_text}</module> removed by scope-resolver "
    while "--" in text:
        text = text.replace("--", "- -")
    return text


def _prolog_and_epilog(text: str, root: etree._Element, descriptor: Path) -> tuple[str, str]:
    """Return the text around the root element, e.g. the XML declaration."""
    prolog = _PROLOG_RE.match(text).group(0)
    localname = etree.QName(root).localname
    qname = f"{root.prefix}:{localname}" if root.prefix else localname
    if not text.startswith(f"<{qname}", len(prolog)):
        raise DescriptorError(f"Cannot locate the start of <{qname}>", descriptor)

    end_tag = text.rfind(f"</{qname}")
    if end_tag >= 0:
        close = text.find(">", end_tag)
        if close >= 0:
            return prolog, text[close + 1:]
    stripped = text.rstrip()
    return prolog, text[len(stripped):]


def _write_atomically(path: Path, content: str, encoding: str) -> None:
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as out:
            out.write(content)
        shutil.copymode(path, tmp)
        os.replace(tmp, path)
    except (OSError, UnicodeError) as exc:
        tmp.unlink(missing_ok=True)
        raise DescriptorIOError("Failed to write pom.xml", path) from exc
