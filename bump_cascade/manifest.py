"""Manifest and last-published marker readers.

Uses tomlkit to read the ``pyproject.toml`` of each package. The package
name comes from ``[project].name``; the import path and the
content-addressed dependencies come from ``[tool.bump-cascade]``:

    [project]
    name = "go-log"

    [tool.bump-cascade]
    import-path = "github.com/ipfs/go-log"
    dependencies = [
        { name = "go-logging", hash = "QmcaSwFc5RBg8yCq54QURwEU4nwjfCpjbpmaAm4VbdGLKv" },
    ]

Dependencies are stored at ``<store_root>/<hash>/<name>/``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name
from tomlkit.exceptions import TOMLKitError

from .errors import ManifestError
from .models import Hash, LastPublished, Manifest, ManifestDep
from .versions import is_version

MANIFEST_FILE = "pyproject.toml"
MARKER_FILE = Path(".bump-cascade") / "lastpubver"
TOOL_TABLE = "bump-cascade"


def store_dir(store_root: Path, hash: Hash, name: str) -> Path:
    """Directory of a stored package version."""
    return store_root / hash / name


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Raises:
        ManifestError: If the file is missing or is not valid TOML.
    """
    try:
        return tomlkit.parse(path.read_text())
    except FileNotFoundError as exc:
        raise ManifestError(f"{path}: no manifest") from exc
    except (OSError, TOMLKitError) as exc:
        raise ManifestError(f"{path}: {exc}") from exc


def get_tool_table(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Return the ``[tool.bump-cascade]`` table, or an empty dict."""
    return doc.get("tool", {}).get(TOOL_TABLE, {})


def read_manifest(pkg_dir: Path) -> Manifest:
    """Read a package's name, import path and direct dependencies.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.

    Raises:
        ManifestError: If the manifest is absent or malformed.
    """
    path = pkg_dir / MANIFEST_FILE
    doc = load_pyproject(path)
    name = doc.get("project", {}).get("name")
    if not name:
        raise ManifestError(f"{path}: [project].name is not set")

    table = get_tool_table(doc)
    import_path = table.get("import-path", "")
    if not isinstance(import_path, str):
        raise ManifestError(f"{path}: import-path must be a string")

    deps: list[ManifestDep] = []
    for i, entry in enumerate(table.get("dependencies", [])):
        if not isinstance(entry, Mapping) or not entry.get("name") or not entry.get("hash"):
            raise ManifestError(f"{path}: dependency #{i} needs both name and hash")
        deps.append(
            ManifestDep(hash=str(entry["hash"]), name=canonicalize_name(str(entry["name"])))
        )

    return Manifest(name=canonicalize_name(str(name)), path=str(import_path), deps=deps)


def read_last_published(pkg_dir: Path) -> LastPublished:
    """Read the version and hash of a package's most recent publication.

    The marker holds one line of the form ``<version>: <hash>``.

    Raises:
        ManifestError: If the marker is absent or malformed.
    """
    path = pkg_dir / MARKER_FILE
    try:
        text = path.read_text().strip()
    except OSError as exc:
        raise ManifestError(f"{path}: {exc}") from exc

    version, sep, hash = text.partition(": ")
    version = version.strip()
    hash = hash.strip()
    if not sep or not hash:
        raise ManifestError(f"{path}: bad lastpubver string")
    if not is_version(version):
        raise ManifestError(f"{path}: bad version {version!r}")
    return LastPublished(version=version, hash=hash)
