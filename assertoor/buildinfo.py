"""Build version information."""

from __future__ import annotations

BUILD_VERSION = ""
BUILD_RELEASE = ""


def get_version(version: str | None = None, release: str | None = None) -> str:
    """Return the human readable build version.

    When no values are given, the module level build values are used.
    """
    if version is None:
        version = BUILD_VERSION
    if release is None:
        release = BUILD_RELEASE

    if not release:
        return f"git-{version}"

    return f"{release} (git-{version})"