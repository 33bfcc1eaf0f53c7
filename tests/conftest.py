"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from bump_cascade.graph import PackageGraph
from bump_cascade.models import PackageNode


def write_package(
    pkg_dir: Path,
    name: str,
    import_path: str,
    deps: list[tuple[str, str]] | None = None,
    extra: str = "",
) -> Path:
    """Write a package manifest; deps are (name, hash) pairs."""
    pkg_dir.mkdir(parents=True, exist_ok=True)
    dep_lines = "".join(
        f'    {{ name = "{dep_name}", hash = "{dep_hash}" }},\n' for dep_name, dep_hash in deps or []
    )
    (pkg_dir / "pyproject.toml").write_text(
        f"""\
[project]
name = "{name}"

[tool.bump-cascade]
import-path = "{import_path}"
dependencies = [
{dep_lines}]
{extra}"""
    )
    return pkg_dir


def write_marker(pkg_dir: Path, version: str, hash: str) -> None:
    marker = pkg_dir / ".bump-cascade" / "lastpubver"
    marker.parent.mkdir(parents=True, exist_ok=True)
    marker.write_text(f"{version}: {hash}\n")


def make_graph(shape: dict[str, list[str]]) -> PackageGraph:
    """Build a graph in memory from hash → direct dependency hashes.

    Package names equal their hashes lowercased.
    """
    nodes: dict[str, PackageNode] = {}

    def closure(hash: str) -> frozenset[str]:
        result: set[str] = set()
        for dep in shape[hash]:
            result.add(dep)
            result |= closure(dep)
        return frozenset(result)

    for hash, direct in shape.items():
        nodes[hash] = PackageNode(
            hash=hash,
            name=hash.lower(),
            path=f"example.com/org/{hash.lower()}",
            direct_deps=frozenset(direct),
            deps=closure(hash),
        )
    return PackageGraph(Path("/nonexistent"), nodes)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A workspace root package and a store holding its dependencies.

    Dependency structure (arrows point at dependencies):

        app → c → b → a
        app → d
        c → a          (declared directly as well as through b)

    Returns the workspace root; the store is ``tmp_path / "store"``.
    """
    store = tmp_path / "store"
    write_package(store / "QmA" / "a", "a", "github.com/org/a")
    write_package(store / "QmB" / "b", "b", "github.com/org/b", [("a", "QmA")])
    write_package(store / "QmC" / "c", "c", "github.com/org/c", [("b", "QmB"), ("a", "QmA")])
    write_package(store / "QmD" / "d", "d", "github.com/org/d")
    return write_package(
        tmp_path / "app", "app", "github.com/org/app", [("c", "QmC"), ("d", "QmD")]
    )


@pytest.fixture
def store(workspace: Path) -> Path:
    return workspace.parent / "store"


@pytest.fixture
def split_workspace(tmp_path: Path) -> Path:
    """A workspace that pulls in two versions of b, both built on a.

        app → b@QmB1 → a
        app → c → b@QmB2 → a

    Returns the workspace root; the store is ``tmp_path / "store"``.
    """
    store = tmp_path / "store"
    write_package(store / "QmA" / "a", "a", "github.com/org/a")
    write_package(store / "QmB1" / "b", "b", "github.com/org/b", [("a", "QmA")])
    write_package(store / "QmB2" / "b", "b", "github.com/org/b", [("a", "QmA")])
    write_package(store / "QmC" / "c", "c", "github.com/org/c", [("b", "QmB2")])
    return write_package(
        tmp_path / "app", "app", "github.com/org/app", [("b", "QmB1"), ("c", "QmC")]
    )
