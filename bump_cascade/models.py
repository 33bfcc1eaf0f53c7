"""Data models for bump-cascade.

These Pydantic models represent the core data structures used throughout
the update workflow: what a manifest declares, the dependency graph built
from manifests, the bubbling plan, and the persisted session records.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

# Content-derived identifier of one package version. Only equality matters.
Hash = str

# Ephemeral working set of hashes used by the bubbling algorithm.
DependencySet = set[Hash]

# The workspace root package is not in the store and has no hash.
ROOT_HASH: Hash = ""


class ManifestDep(BaseModel):
    """One dependency declared in a manifest."""

    hash: Hash
    name: str


class Manifest(BaseModel):
    """What a package's pyproject.toml declares.

    Attributes:
        name: Canonical package name.
        path: Import path, e.g. ``github.com/org/repo``.
        deps: Directly declared dependencies, in declaration order.
    """

    name: str
    path: str
    deps: list[ManifestDep] = Field(default_factory=list)


class LastPublished(BaseModel):
    """Contents of a package's last-published marker."""

    version: str
    hash: Hash


class PackageNode(BaseModel):
    """A package version in the dependency graph.

    Only hashes are stored for dependencies; the nodes themselves live in
    the owning PackageGraph.

    Attributes:
        hash: Identity of this package version.
        name: Canonical package name.
        path: Import path.
        direct_deps: Hashes declared in this package's manifest.
        deps: Full transitive closure of dependency hashes.
    """

    model_config = ConfigDict(frozen=True)

    hash: Hash
    name: str
    path: str
    direct_deps: frozenset[Hash] = frozenset()
    deps: frozenset[Hash] = frozenset()


class PlanEntry(BaseModel):
    """One package in a bubbling plan, before names are resolved.

    Attributes:
        hash: The package that must be updated.
        level: Generation index; 0 is the target itself.
        direct_triggers: Dependencies resolved in the previous round that
            caused this package to resolve.
        also_update: Declared direct dependencies that are also being
            updated but were not triggers this round.
        indirect_deps: All other in-scope dependencies, including
            also_update.
    """

    hash: Hash
    level: int
    direct_triggers: list[Hash] = Field(default_factory=list)
    also_update: list[Hash] = Field(default_factory=list)
    indirect_deps: list[Hash] = Field(default_factory=list)


class Todo(BaseModel):
    """A named, persistable workflow record for one package.

    ``published``, ``ready`` and ``unmet_deps`` are derived from the other
    fields on every load and are never written to the session file.
    """

    name: str
    path: str
    level: int
    orig_hash: Hash = ""
    deps: list[str] = Field(default_factory=list)
    also_update: list[str] = Field(default_factory=list)
    indirect: list[str] = Field(default_factory=list)

    new_hash: Hash = ""
    new_version: str = ""
    new_deps: dict[str, Hash] = Field(default_factory=dict)

    meta: dict[str, str] = Field(default_factory=dict)

    published: bool = Field(default=False, exclude=True)
    ready: bool = Field(default=False, exclude=True)
    unmet_deps: list[str] = Field(default_factory=list, exclude=True)

    def sort_key(self) -> tuple[int, int, list[str], str]:
        """Key for the listing order: level, dep count, dep names, name."""
        return (self.level, len(self.deps), self.deps, self.name)

    def clear_publication(self) -> None:
        self.new_hash = ""
        self.new_version = ""
        self.new_deps = {}


class SessionDocument(BaseModel):
    """The persisted session: ordered todos plus shared default metadata."""

    todo: list[Todo] = Field(default_factory=list)
    defaults: dict[str, str] = Field(default_factory=dict)
