"""Path helpers shared by the path tree and the session.

Paths are repo-style: forward slashes, no leading or trailing slash, no
``.``/``..`` segments once normalized.
"""

from __future__ import annotations

import os

from .exceptions import InvalidPath


def is_root_path(path: str | os.PathLike[str]) -> bool:
    """Return True if path represents the root (empty or only slashes)."""
    p = os.fspath(path)
    if os.name == "nt":
        p = p.replace("\\", "/")
    return p.strip("/") == ""


def normalize_path(path: str | os.PathLike[str]) -> str:
    """Normalize a path: strip leading/trailing slashes, reject bad segments."""
    path = os.fspath(path)
    if os.name == "nt":
        path = path.replace("\\", "/")
    path = path.strip("/")
    if not path:
        raise InvalidPath("Path must not be empty")
    segments = path.split("/")
    for seg in segments:
        if not seg:
            raise InvalidPath(f"Empty segment in path: {path!r}")
        if seg in (".", ".."):
            raise InvalidPath(f"Invalid path segment: {seg!r}")
    return "/".join(segments)


def split_path(path: str | os.PathLike[str]) -> list[str]:
    """Normalize *path* and return its segments."""
    return normalize_path(path).split("/")


def parent_path(path: str) -> str:
    """Return the parent of a normalized path ("" for a top-level entry)."""
    head, _, _ = path.rpartition("/")
    return head


def resolve_relative(origin: str, name: str) -> str:
    """Resolve *name* against the directory containing *origin*.

    ``.``, ``..`` and repeated slashes are collapsed.  A leading ``/`` makes
    *name* relative to the root instead.  Raises :class:`InvalidPath` when
    *name* is empty, ends in ``/`` or ``.`` (it would name a directory
    marker rather than an entry), or climbs above the root.
    """
    name = os.fspath(name)
    if os.name == "nt":
        name = name.replace("\\", "/")
    if not name or name.endswith("/") or name.endswith("."):
        raise InvalidPath(f"Invalid rename target: {name!r}")

    base = "" if name.startswith("/") else parent_path(normalize_path(origin))
    stack = base.split("/") if base else []
    for seg in name.split("/"):
        if seg in ("", "."):
            continue
        if seg == "..":
            if not stack:
                raise InvalidPath(f"Rename target escapes the tree root: {name!r}")
            stack.pop()
            continue
        stack.append(seg)
    if not stack:
        raise InvalidPath(f"Rename target resolves to the root: {name!r}")
    return "/".join(stack)


def is_within(path: str, ancestor: str) -> bool:
    """Return True if *path* equals *ancestor* or lies beneath it."""
    return path == ancestor or path.startswith(ancestor + "/")
