"""Dependency graph and update-plan computation.

PackageGraph reads manifests starting at the workspace root and records,
for every package version (keyed by hash), its declared dependencies and
the full transitive closure. All nodes live in one table owned by the
graph; everything else refers to them by hash.

bubble_list turns "update package X" into a level-ordered plan: every
package that depends on X, grouped into generations so that a package
only appears after all of its in-scope dependencies.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from .errors import DuplicateName, InternalInconsistency, ManifestError, PackageNotFound
from .manifest import read_manifest, store_dir
from .models import ROOT_HASH, DependencySet, Hash, PackageNode, PlanEntry


class PackageGraph:
    """All package versions reachable from a root, keyed by hash."""

    def __init__(self, store_root: Path, nodes: dict[Hash, PackageNode] | None = None):
        self.store_root = store_root
        self._nodes: dict[Hash, PackageNode] = dict(nodes or {})

    @classmethod
    def load(cls, store_root: Path, root_dir: Path) -> PackageGraph:
        """Build the graph for the package in root_dir and everything it uses.

        Raises:
            ManifestError: If any reachable manifest is missing or malformed.
        """
        graph = cls(store_root)
        graph.gather_deps(ROOT_HASH, root_dir)
        return graph

    def __contains__(self, hash: object) -> bool:
        return hash in self._nodes

    def __getitem__(self, hash: Hash) -> PackageNode:
        return self._nodes[hash]

    def __iter__(self):
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def gather_deps(self, hash: Hash, location: Path) -> PackageNode:
        """Read the package at location and the closure of its dependencies.

        Each distinct hash is read once, however many dependents refer to
        it. On failure the graph is left as it was before the call.

        Raises:
            ManifestError: If any reachable manifest is missing or malformed.
        """
        staged = dict(self._nodes)
        node = self._gather(staged, set(), hash, location)
        self._nodes = staged
        return node

    def _gather(
        self,
        nodes: dict[Hash, PackageNode],
        visiting: set[Hash],
        hash: Hash,
        location: Path,
    ) -> PackageNode:
        if hash in nodes:
            return nodes[hash]
        if hash in visiting:
            raise ManifestError(f"{location}: dependency cycle through {hash!r}")
        visiting.add(hash)

        manifest = read_manifest(location)
        direct: DependencySet = set()
        closure: DependencySet = set()
        for dep in manifest.deps:
            dep_node = self._gather(
                nodes, visiting, dep.hash, store_dir(self.store_root, dep.hash, dep.name)
            )
            direct.add(dep.hash)
            closure.add(dep.hash)
            # Pull in everything the dependency needs (closure propagation)
            closure |= dep_node.deps

        visiting.discard(hash)
        node = PackageNode(
            hash=hash,
            name=manifest.name,
            path=manifest.path,
            direct_deps=frozenset(direct),
            deps=frozenset(closure),
        )
        nodes[hash] = node
        return node

    def by_name(self, name: str) -> PackageNode:
        """Find the single package version with the given name.

        Raises:
            PackageNotFound: If no package has that name.
            DuplicateName: If two versions of the package are reachable.
        """
        found: PackageNode | None = None
        for hash in sorted(self._nodes):
            node = self._nodes[hash]
            if node.name != name:
                continue
            if found is not None:
                raise DuplicateName(name, found.hash, node.hash)
            found = node
        if found is None:
            raise PackageNotFound(name)
        return found

    def names(self, hashes: Iterable[Hash]) -> list[str]:
        """Sorted package names for a collection of hashes."""
        return sorted(self._nodes[h].name for h in hashes)

    def rev_deps(self, hash: Hash) -> DependencySet:
        """Every package whose closure contains hash."""
        return {h for h, node in self._nodes.items() if hash in node.deps}


def bubble_list(graph: PackageGraph, target: Hash) -> list[PlanEntry]:
    """Compute the level-ordered update plan for changing target.

    The plan holds the target (level 0) and every package depending on
    it. A package resolves in the first round in which all of its
    in-scope dependencies have resolved, so its level is the length of
    the longest chain of in-scope dependencies down to the target.

    For each package the plan records why it is updated: the
    dependencies resolved in the previous round (its triggers), the
    other declared dependencies that are also being updated, and the
    remaining in-scope transitive dependencies.

    Raises:
        InternalInconsistency: If the decomposition invariants fail.
    """
    scope = graph.rev_deps(target)
    scope.add(target)

    # In-scope deps still waiting to resolve, and an untouched copy
    pending: dict[Hash, DependencySet] = {}
    full: dict[Hash, frozenset[Hash]] = {}
    for hash in scope:
        pending[hash] = set(graph[hash].deps & scope)
        full[hash] = frozenset(pending[hash])

    plan: list[PlanEntry] = []
    resolved: DependencySet = set()
    level = 0
    while True:
        newly: list[Hash] = []
        for hash in sorted(pending):
            waiting = pending[hash]
            pruned = waiting & resolved
            waiting -= pruned
            if waiting:
                continue
            if resolved and not pruned:
                raise InternalInconsistency(
                    f"{graph[hash].name} resolved at level {level} without a trigger"
                )

            also_update = (graph[hash].direct_deps & full[hash]) - pruned
            removed = len(graph[hash].direct_deps & full[hash]) - len(also_update)
            if removed != len(pruned):
                raise InternalInconsistency(
                    f"{graph[hash].name}: triggers {graph.names(pruned)} are not all "
                    "declared as direct dependencies"
                )
            newly.append(hash)
            plan.append(
                PlanEntry(
                    hash=hash,
                    level=level,
                    direct_triggers=sorted(pruned),
                    also_update=sorted(also_update),
                    indirect_deps=sorted(full[hash] - pruned),
                )
            )

        if not newly:
            break
        for hash in newly:
            del pending[hash]
        resolved = set(newly)
        level += 1

    if pending:
        raise InternalInconsistency(
            f"unresolved packages after {level} rounds: {graph.names(pending)}"
        )
    return plan
