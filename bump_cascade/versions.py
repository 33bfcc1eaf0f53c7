"""Version parsing for last-published markers.

A marker records the version a package was published under. Publishers
often write short forms such as "1.0", so a missing minor or patch
component is read as zero before the string is checked as semver.
"""

from __future__ import annotations

import re

import semver

# Numeric core, then an optional prerelease/build suffix left to semver
_CORE_RE = re.compile(r"^(?P<core>[^-+]*)(?P<suffix>.*)$")


def parse_version(version_str: str) -> semver.Version:
    """Parse the version recorded in a last-published marker.

    "1" and "1.2" are read as "1.0.0" and "1.2.0". A prerelease or build
    suffix is kept as written ("1.2-rc.1" is "1.2.0-rc.1").

    Raises:
        ValueError: If the string is not a version, including one with
            more than three numeric components.
    """
    match = _CORE_RE.match(version_str.strip())
    core, suffix = match.group("core"), match.group("suffix")
    parts = core.split(".")
    if len(parts) > 3:
        raise ValueError(f"{version_str!r} has more than three version components")
    while len(parts) < 3:
        parts.append("0")
    return semver.Version.parse(".".join(parts) + suffix)


def is_version(version_str: str) -> bool:
    """Return True if version_str is a valid, possibly shortened, semver."""
    try:
        parse_version(version_str)
    except ValueError:
        return False
    return True
