"""Workflow state: the named update plan and its progress.

gather() turns the bubbling plan for one package into Todo records.
WorkflowState holds those records for a session, recomputes which are
published and which are ready, and resolves keys for format strings.

A Todo is published only while every dependency hash it recorded at
publish time still matches what that dependency actually published. If a
dependency is republished, everything that recorded its old hash drops
out of the published state again.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from .errors import (
    BadImportPath,
    DuplicateName,
    NotPublishable,
    NotYetPublished,
    PackageNotFound,
    ReservedKey,
    SessionError,
    UndefinedKey,
)
from .graph import PackageGraph, bubble_list
from .models import LastPublished, Manifest, SessionDocument, Todo
from .template import render


@dataclass(frozen=True)
class KeyDesc:
    """A built-in key available to format strings."""

    name: str
    desc: str = ""
    alias: str = ""
    unused: bool = False


# Keys that make sense before a session exists (preview)
BASIC_KEYS = [
    KeyDesc("name", "package name"),
    KeyDesc("path", "import path"),
    KeyDesc("dir", "directory package is located in"),
    KeyDesc("giturl", "git url for downloading packages"),
    KeyDesc("deps", "space separated list of direct deps."),
]

ALL_KEYS = BASIC_KEYS + [
    KeyDesc("ready", "the string READY if all deps. are published"),
    KeyDesc("published", "the string PUBLISHED if published"),
    KeyDesc("invalidated", "the string INVALIDATED if invalidated"),
    KeyDesc("ver", "current version if published", alias="version"),
    KeyDesc("hash", "current hash if published"),
    KeyDesc("unmet", "space separated list of unmet deps.", alias="unmetdeps"),
    KeyDesc("level", unused=True),
]

RESERVED_KEYS = frozenset(
    name for kd in ALL_KEYS for name in (kd.name, kd.alias) if name
)


def keys_help(keys: Iterable[KeyDesc]) -> str:
    """Two-column help listing of keys."""
    rows = [
        (f"{kd.name}|{kd.alias}" if kd.alias else kd.name, kd.desc)
        for kd in keys
        if not kd.unused
    ]
    width = max((len(label) for label, _ in rows), default=0)
    return "".join(f"  {label.ljust(width)}  {desc}\n" for label, desc in rows)


def check_internal(key: str) -> None:
    """Reject metadata keys that would shadow a built-in key.

    Raises:
        ReservedKey: If key is a built-in key name or alias.
    """
    if key in RESERVED_KEYS:
        raise ReservedKey(key)


def gather(graph: PackageGraph, name: str) -> list[Todo]:
    """Compute the ordered todo list for updating the package called name.

    Raises:
        PackageNotFound: If no reachable package has that name.
        DuplicateName: If the name is ambiguous, or two versions of one
            package would both need updating.
        InternalInconsistency: If the plan cannot be computed consistently.
    """
    target = graph.by_name(name)
    todos = [
        Todo(
            name=graph[entry.hash].name,
            path=graph[entry.hash].path,
            level=entry.level,
            orig_hash=entry.hash,
            deps=graph.names(entry.direct_triggers),
            also_update=graph.names(entry.also_update),
            indirect=graph.names(entry.indirect_deps),
        )
        for entry in bubble_list(graph, target.hash)
    ]
    todos.sort(key=Todo.sort_key)
    index_by_name(todos)
    return todos


def index_by_name(todos: Iterable[Todo]) -> dict[str, Todo]:
    """Map names to todos.

    Raises:
        DuplicateName: If two todos share a name.
    """
    by_name: dict[str, Todo] = {}
    for todo in todos:
        prev = by_name.get(todo.name)
        if prev is not None:
            raise DuplicateName(todo.name, prev.orig_hash, todo.orig_hash)
        by_name[todo.name] = todo
    return by_name


class WorkflowState:
    """The todos of one session plus the shared default metadata.

    Args:
        todos: Todo records; kept in the order given.
        defaults: Metadata used when a todo has no value of its own.
        src_root: Checkout root used to derive the ``dir`` key.
    """

    def __init__(
        self,
        todos: list[Todo],
        defaults: dict[str, str] | None = None,
        src_root: Path | None = None,
    ) -> None:
        self.todos = todos
        self.defaults = defaults if defaults is not None else {}
        self.src_root = src_root or Path(".")
        self.by_name = index_by_name(todos)
        self._check_references()
        self.update_state()

    @classmethod
    def from_document(cls, doc: SessionDocument, src_root: Path | None = None) -> WorkflowState:
        return cls(doc.todo, doc.defaults, src_root)

    def to_document(self) -> SessionDocument:
        return SessionDocument(todo=self.todos, defaults=self.defaults)

    def _check_references(self) -> None:
        for todo in self.todos:
            for name in (*todo.deps, *todo.also_update, *todo.indirect):
                if name not in self.by_name:
                    raise SessionError(f"{todo.name}: dependency {name} has no entry")

    def get_todo(self, name: str) -> Todo:
        """Raises PackageNotFound if there is no todo called name."""
        try:
            return self.by_name[name]
        except KeyError:
            raise PackageNotFound(name) from None

    # -- derived state -------------------------------------------------

    def update_state(self) -> None:
        """Recompute published, ready and unmet_deps for every todo.

        Todos are visited in list order, which puts dependencies first.
        """
        for todo in self.todos:
            todo.published = bool(todo.new_hash) and all(
                name in self.by_name
                and self.by_name[name].published
                and self.by_name[name].new_hash == hash
                for name, hash in todo.new_deps.items()
            )
            todo.unmet_deps = []
            if todo.published:
                todo.ready = False
                continue
            todo.ready = True
            for name in todo.deps:
                if not self.by_name[name].published:
                    todo.unmet_deps.append(name)
                    todo.ready = False

    def mismatches(self, todo: Todo) -> list[str]:
        """Describe why todo's recorded dependency hashes keep it unpublished."""
        problems: list[str] = []
        for name, hash in sorted(todo.new_deps.items()):
            dep = self.by_name.get(name)
            if dep is None:
                problems.append(f"{name} is not part of this session")
            elif not dep.published:
                problems.append(f"{name} is not published")
            elif dep.new_hash != hash:
                problems.append(f"{name} is at {hash}, but {dep.new_hash} was published")
        return problems

    # -- mutations -----------------------------------------------------

    def mark(self, manifest: Manifest, last_published: LastPublished) -> Todo:
        """Record a publication of the package described by manifest.

        The new hash and version come from the last-published marker;
        the dependency snapshot comes from the manifest, restricted to
        packages in this session. The state is updated even when the
        package cannot be considered published.

        Raises:
            PackageNotFound: If the package is not part of the session.
            DuplicateName: If the manifest lists a dependency twice.
            NotPublishable: If a recorded dependency hash does not match.
        """
        todo = self.get_todo(manifest.name)
        declared: dict[str, str] = {}
        for dep in manifest.deps:
            if dep.name in declared:
                raise DuplicateName(dep.name, declared[dep.name], dep.hash)
            declared[dep.name] = dep.hash
        new_deps = {name: hash for name, hash in declared.items() if name in self.by_name}

        todo.new_hash = last_published.hash
        todo.new_version = last_published.version
        todo.new_deps = new_deps
        self.update_state()
        if not todo.published:
            raise NotPublishable(todo.name, self.mismatches(todo))
        return todo

    def reset(self, name: str) -> Todo:
        """Forget the recorded publication of one package."""
        todo = self.get_todo(name)
        todo.clear_publication()
        self.update_state()
        return todo

    def clean(self) -> list[Todo]:
        """Forget the publication of every todo that is not published.

        Returns the todos that were invalidated and have been cleared.
        """
        cleared = [t for t in self.todos if not t.published and (t.new_hash or t.new_deps)]
        for todo in self.todos:
            if not todo.published:
                todo.clear_publication()
        self.update_state()
        return cleared

    def set_meta(self, name: str, key: str, value: str) -> None:
        check_internal(key)
        self.get_todo(name).meta[key] = value

    def unset_meta(self, name: str, key: str) -> None:
        check_internal(key)
        self.get_todo(name).meta.pop(key, None)

    def set_default(self, key: str, value: str) -> None:
        check_internal(key)
        self.defaults[key] = value

    def unset_default(self, key: str) -> None:
        check_internal(key)
        self.defaults.pop(key, None)

    # -- key resolution ------------------------------------------------

    def get(self, todo: Todo, key: str) -> tuple[str, bool]:
        """Resolve key for todo.

        Returns ``(value, present)``. Presence-only keys such as
        ``published`` return ``("", False)`` instead of failing.

        Raises:
            NotYetPublished: For ``version`` or ``hash`` before publication.
            UndefinedKey: If key is neither built in nor set as metadata.
            BadImportPath: For ``giturl`` on a path without a host.
        """
        if key == "name":
            return todo.name, True
        if key == "path":
            return todo.path, True
        if key == "dir":
            return str(self.src_root.joinpath(*todo.path.split("/"))), True
        if key == "giturl":
            host, sep, rest = todo.path.partition("/")
            if not sep:
                raise BadImportPath(f"{todo.name}: ill formed path {todo.path!r}")
            return f"git@{host}:{rest}.git", True
        if key in ("ver", "version"):
            if not todo.published:
                raise NotYetPublished(todo.path, key)
            return todo.new_version, True
        if key == "hash":
            if not todo.published:
                raise NotYetPublished(todo.path, key)
            return todo.new_hash, True
        if key == "level":
            return str(todo.level), True
        if key == "published":
            return ("PUBLISHED", True) if todo.published else ("", False)
        if key == "ready":
            return ("READY", True) if todo.ready else ("", False)
        if key == "invalidated":
            if todo.new_deps and not todo.published:
                return "INVALIDATED", True
            return "", False
        if key == "deps":
            return " ".join(todo.deps), bool(todo.deps)
        if key in ("unmet", "unmetdeps"):
            return " ".join(todo.unmet_deps), bool(todo.unmet_deps)

        if key in todo.meta:
            return todo.meta[key], True
        if key in self.defaults:
            return self.defaults[key], True
        raise UndefinedKey(todo.path, key)

    def format(self, todo: Todo, template: str) -> str:
        """Render template for todo."""
        return render(template, partial(self.get, todo))
