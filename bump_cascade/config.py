"""Run-time configuration.

All process-wide settings are collected once into an immutable Context
that is passed to the graph, workflow and CLI code. Values come from
environment variables, falling back to ``[tool.bump-cascade]`` in the
workspace root's pyproject.toml:

    BUMP_CASCADE_HOME   base directory; store and src default below it
    BUMP_CASCADE_STORE  content-addressed package store
    BUMP_CASCADE_SRC    checkout root used for the ``dir`` key
    BUMP_CASCADE_STATE  session file written by ``init``
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from .errors import ConfigError
from .manifest import MANIFEST_FILE, get_tool_table, load_pyproject

HOME_ENV = "BUMP_CASCADE_HOME"
STORE_ENV = "BUMP_CASCADE_STORE"
SRC_ENV = "BUMP_CASCADE_SRC"
STATE_ENV = "BUMP_CASCADE_STATE"

STATE_FILENAME = ".bump-cascade-state.json"


class Context(BaseModel):
    """Immutable settings shared by one invocation.

    Attributes:
        root: Directory of the workspace root package.
        src_root: Checkout root; ``dir`` is ``src_root/<import path>``.
        store_root: Where dependencies live, as ``<hash>/<name>/``.
        state_file: Session file, if one has been configured.
    """

    model_config = ConfigDict(frozen=True)

    root: Path
    src_root: Path
    store_root: Path | None = None
    state_file: Path | None = None

    @classmethod
    def from_env(
        cls, root: Path | None = None, environ: Mapping[str, str] | None = None
    ) -> Context:
        """Build the context for a workspace root."""
        root = root or Path.cwd()
        env = os.environ if environ is None else environ
        home = Path(env[HOME_ENV]) if env.get(HOME_ENV) else None

        table: Mapping = {}
        if (root / MANIFEST_FILE).exists():
            table = get_tool_table(load_pyproject(root / MANIFEST_FILE))

        if env.get(STORE_ENV):
            store_root = Path(env[STORE_ENV])
        elif table.get("store"):
            store_root = root / str(table["store"])
        elif home is not None:
            store_root = home / "store"
        else:
            store_root = None

        if env.get(SRC_ENV):
            src_root = Path(env[SRC_ENV])
        elif home is not None:
            src_root = home / "src"
        else:
            src_root = root

        state_file = Path(env[STATE_ENV]) if env.get(STATE_ENV) else None
        return cls(root=root, store_root=store_root, src_root=src_root, state_file=state_file)

    def require_store_root(self) -> Path:
        """Return the package store.

        Raises:
            ConfigError: If no store could be determined.
        """
        if self.store_root is None:
            raise ConfigError(
                f"no package store configured: set {STORE_ENV} or {HOME_ENV}, "
                "or add 'store' to [tool.bump-cascade] in pyproject.toml"
            )
        return self.store_root

    def require_state_file(self) -> Path:
        """Return the configured session file.

        Raises:
            ConfigError: If BUMP_CASCADE_STATE is not set.
        """
        if self.state_file is None:
            raise ConfigError(f"{STATE_ENV} not set, see the 'init' command")
        return self.state_file
