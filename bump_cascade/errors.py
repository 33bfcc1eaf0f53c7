"""Exception hierarchy for bump-cascade.

Library code raises these; the CLI turns them into click errors. Three
broad tiers exist: structural I/O failures (manifests, session files),
logical failures (unknown packages, duplicate names, internal
inconsistencies of the bubbling algorithm) and template-local failures.
"""

from __future__ import annotations


class BumpCascadeError(Exception):
    """Base class for all bump-cascade errors."""


class ConfigError(BumpCascadeError):
    """Required configuration (environment or root pyproject.toml) is missing."""


class ManifestError(BumpCascadeError):
    """A package manifest or last-published marker is missing or malformed."""


class SessionError(BumpCascadeError):
    """The session file is missing, corrupt, or already exists on create."""


class PackageNotFound(BumpCascadeError):
    """No package or todo with the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"package not found: {name}")
        self.name = name


class DuplicateName(BumpCascadeError):
    """Two distinct package versions share one name."""

    def __init__(self, name: str, first: str, second: str) -> None:
        super().__init__(f"duplicate entries for {name}: {first!r} and {second!r}")
        self.name = name
        self.hashes = (first, second)


class InternalInconsistency(BumpCascadeError):
    """An invariant of the level decomposition was violated.

    Raised instead of emitting an incorrect update plan. Seeing this means
    either a bug or manifests whose declared dependencies disagree with
    the computed closure.
    """


class ReservedKey(BumpCascadeError):
    """Attempt to set or unset a built-in key as metadata."""

    def __init__(self, key: str) -> None:
        super().__init__(f"cannot set internal value: {key}")
        self.key = key


class NotPublishable(BumpCascadeError):
    """A package was marked but its recorded dependencies do not match."""

    def __init__(self, name: str, mismatches: list[str]) -> None:
        detail = "; ".join(mismatches) if mismatches else "no published hash"
        super().__init__(f"could not put {name} in published state: {detail}")
        self.name = name
        self.mismatches = mismatches


class BadImportPath(BumpCascadeError):
    """An import path has no host component."""


class KeyResolutionError(BumpCascadeError):
    """A key could not be resolved for a record.

    Soft for the template engine: inside a bracket group it only drops
    that group.
    """


class UndefinedKey(KeyResolutionError):
    def __init__(self, path: str, key: str) -> None:
        super().__init__(f"{path}: '{key}' undefined")
        self.key = key


class NotYetPublished(KeyResolutionError):
    def __init__(self, path: str, key: str) -> None:
        super().__init__(f"{path}: '{key}' undefined, not yet published")
        self.key = key


class BadFormatString(BumpCascadeError):
    """A template could not be rendered."""


class MalformedTemplate(BadFormatString):
    """Syntax error in a template; always fatal for the render."""

    def __init__(self, template: str, reason: str) -> None:
        super().__init__(f"bad format string {template!r}: {reason}")
        self.template = template
        self.reason = reason


class UnresolvedVariable(BadFormatString):
    """A soft key failure happened outside any bracket group."""

    def __init__(self, cause: KeyResolutionError) -> None:
        super().__init__(str(cause))
        self.cause = cause
