"""Session file persistence.

A session is one JSON document holding the ordered todo list and the
shared default metadata. It is created exactly once, then read and
rewritten as a whole by every command that changes it. Derived fields
(published, ready, unmet deps) are never written; they are recomputed
when the session is loaded.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError

from .errors import SessionError
from .models import SessionDocument
from .workflow import WorkflowState


def encode(doc: SessionDocument) -> str:
    """Serialize a session document as indented JSON."""
    return doc.model_dump_json(indent=2, exclude_defaults=True) + "\n"


def create_session(path: Path, state: WorkflowState) -> None:
    """Write a new session file.

    Raises:
        SessionError: If the file already exists.
    """
    try:
        with open(path, "x") as fh:
            fh.write(encode(state.to_document()))
    except FileExistsError as exc:
        raise SessionError(f"{path}: session already exists") from exc
    except OSError as exc:
        raise SessionError(f"{path}: {exc}") from exc


def write_session(path: Path, state: WorkflowState) -> None:
    """Rewrite an existing session file with the current state.

    The file must already exist, so a mistyped path never starts a
    fresh session by accident.

    Raises:
        SessionError: If the file does not exist or cannot be written.
    """
    try:
        # r+ refuses to create the file
        with open(path, "r+") as fh:
            fh.seek(0)
            fh.write(encode(state.to_document()))
            fh.truncate()
    except FileNotFoundError as exc:
        raise SessionError(f"{path}: no session, run 'init' first") from exc
    except OSError as exc:
        raise SessionError(f"{path}: {exc}") from exc


def read_session(path: Path) -> SessionDocument:
    """Parse a session file without computing derived state.

    Raises:
        SessionError: If the file is missing or corrupt.
    """
    try:
        text = path.read_text()
    except OSError as exc:
        raise SessionError(f"{path}: {exc}") from exc
    try:
        return SessionDocument.model_validate_json(text)
    except ValidationError as exc:
        raise SessionError(f"{path}: corrupt session: {exc}") from exc


def load_session(path: Path, src_root: Path | None = None) -> WorkflowState:
    """Load a session and recompute its derived state.

    Raises:
        SessionError: If the file is missing or corrupt.
        DuplicateName: If two todos share a name.
    """
    return WorkflowState.from_document(read_session(path), src_root)
