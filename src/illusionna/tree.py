"""Local mirror of a remote git tree.

A :class:`PathTree` is built once from the flat ``(content_hash, path,
remote_ref)`` listing of a branch and then mutated in place while the user
edits: paths are inserted, renamed (with every descendant re-pathed) and
deleted.  Nothing here performs I/O.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterable, Iterator

from .exceptions import InvalidPath, NotFound, StructuralConflict
from .paths import is_root_path, is_within, normalize_path, resolve_relative, split_path

logger = logging.getLogger(__name__)

__all__ = ["PathEntry", "PathTree", "RenameTrace", "matches"]

# old file path -> (new file path, content hash carried by the file)
RenameTrace = dict[str, tuple[str, str]]


@dataclass(slots=True)
class PathEntry:
    """A node of the path tree.

    Attributes:
        name: Last path segment (the key under which the node is stored).
        path: Full ``/``-joined path from the tree root.
        content_hash: Remote blob hash, ``""`` for local or synthesized nodes.
        remote_ref: Opaque remote locator, ``""`` when there is none.
        children: ``None`` for a file, a segment -> entry dict for a directory.
    """

    name: str
    path: str
    content_hash: str = ""
    remote_ref: str = ""
    children: dict[str, PathEntry] | None = None

    @property
    def is_dir(self) -> bool:
        return self.children is not None

    @property
    def kind(self) -> str:
        return "directory" if self.children is not None else "file"

    def entries(self) -> list[PathEntry]:
        """Children in lexicographic segment order (empty for files)."""
        if self.children is None:
            return []
        return [self.children[k] for k in sorted(self.children)]

    def files(self) -> Iterator[PathEntry]:
        """Yield this entry if it is a file, else every file beneath it."""
        if self.children is None:
            yield self
            return
        for child in self.entries():
            yield from child.files()

    def matches(self, needle: str) -> bool:
        return matches(self, needle)


def matches(entry: PathEntry, needle: str) -> bool:
    """Case-insensitive substring match on the entry's path.

    A directory matches when its own path matches or any descendant does.
    """
    needle = needle.lower()
    if needle in entry.path.lower():
        return True
    if entry.children is None:
        return False
    return any(matches(child, needle) for child in entry.children.values())


def _directory(name: str, path: str) -> PathEntry:
    return PathEntry(name, path, children={})


def _repath(entry: PathEntry, new_path: str, trace: RenameTrace) -> None:
    """Rewrite *entry* and all of its descendants to live under *new_path*."""
    old_path = entry.path
    entry.path = new_path
    entry.name = new_path.rsplit("/", 1)[-1]
    if entry.children is None:
        trace[old_path] = (new_path, entry.content_hash)
        return
    for key, child in entry.children.items():
        _repath(child, f"{new_path}/{key}", trace)


def _merge(existing: PathEntry, incoming: PathEntry) -> None:
    """Merge directory *incoming* into directory *existing*; incoming files win."""
    for key, child in incoming.children.items():
        current = existing.children.get(key)
        if current is not None and current.is_dir and child.is_dir:
            _merge(current, child)
        else:
            existing.children[key] = child


class PathTree:
    """Ordered, recursive mapping from path segment to :class:`PathEntry`."""

    def __init__(self, root: dict[str, PathEntry] | None = None):
        self.root: dict[str, PathEntry] = root if root is not None else {}

    def __repr__(self) -> str:
        return f"PathTree(files={len(self)})"

    def __eq__(self, other) -> bool:
        if isinstance(other, PathTree):
            return self.root == other.root
        return NotImplemented

    def __contains__(self, path: str) -> bool:
        try:
            return self.get(path) is not None
        except InvalidPath:
            return False

    def __len__(self) -> int:
        """Number of files in the tree."""
        return sum(1 for _ in self.files())

    # -- construction -------------------------------------------------------

    @classmethod
    def build(cls, flat_entries: Iterable[tuple[str, str, str]]) -> PathTree:
        """Build a tree from ``(content_hash, path, remote_ref)`` triples.

        Intermediate directories are synthesized with no remote identity.
        Malformed listings (a file and a directory at the same key) are
        tolerated: previously attached children are never discarded.
        """
        tree = cls()
        for content_hash, path, remote_ref in flat_entries:
            tree._fill(split_path(path), content_hash, remote_ref)
        return tree

    def _fill(self, segments: list[str], content_hash: str, remote_ref: str) -> None:
        level = self.root
        for i, seg in enumerate(segments[:-1]):
            node = level.get(seg)
            if node is None:
                node = _directory(seg, "/".join(segments[: i + 1]))
                level[seg] = node
            elif node.children is None:
                logger.warning("File %s is also listed as a directory", node.path)
                node.children = {}
            level = node.children

        name = segments[-1]
        path = "/".join(segments)
        node = level.get(name)
        if node is not None and node.children is not None:
            logger.warning("Directory %s is also listed as a file", path)
            node.content_hash = content_hash
            node.remote_ref = remote_ref
        else:
            level[name] = PathEntry(name, path, content_hash, remote_ref)

    # -- lookup -------------------------------------------------------------

    def get(self, path: str | os.PathLike[str]) -> PathEntry | None:
        """Return the entry at *path*, or ``None`` if there is none."""
        if is_root_path(path):
            return None
        level = self.root
        node = None
        for seg in split_path(path):
            if level is None:
                return None
            node = level.get(seg)
            if node is None:
                return None
            level = node.children
        return node

    def entries(self) -> list[PathEntry]:
        """Top-level entries in lexicographic order."""
        return [self.root[k] for k in sorted(self.root)]

    def files(self) -> Iterator[PathEntry]:
        """Yield every file entry, depth first in lexicographic order."""
        for entry in self.entries():
            yield from entry.files()

    def flatten(self) -> list[tuple[str, str, str]]:
        """Inverse of :meth:`build`: ``(content_hash, path, remote_ref)`` per file."""
        return [(e.content_hash, e.path, e.remote_ref) for e in self.files()]

    def search(self, needle: str) -> list[str]:
        """Paths of the files that match *needle*."""
        return [e.path for e in self.files() if matches(e, needle)]

    # -- validation ---------------------------------------------------------

    def _check_placement(self, segments: list[str], incoming: PathEntry | None, ignore: str | None = None) -> None:
        """Raise :class:`StructuralConflict` if *incoming* cannot land at *segments*.

        *incoming* ``None`` stands for a new file.  The node at *ignore* is
        treated as already removed.
        """
        level = self.root
        for seg in segments[:-1]:
            node = level.get(seg)
            if node is None or node.path == ignore:
                return
            if node.children is None:
                raise StructuralConflict(f"{node.path} is a file, not a directory")
            level = node.children

        node = level.get(segments[-1])
        if node is None or node.path == ignore:
            return
        incoming_is_dir = incoming is not None and incoming.is_dir
        if node.is_dir != incoming_is_dir:
            raise StructuralConflict(
                f"Cannot replace {node.kind} {node.path} with a {'directory' if incoming_is_dir else 'file'}"
            )
        if incoming_is_dir:
            self._check_merge(node, incoming, ignore)

    def _check_merge(self, existing: PathEntry, incoming: PathEntry, ignore: str | None) -> None:
        for key, child in incoming.children.items():
            current = existing.children.get(key)
            if current is None or current.path == ignore:
                continue
            if current.is_dir != child.is_dir:
                raise StructuralConflict(
                    f"Cannot merge {child.kind} {child.path} onto {current.kind} {current.path}"
                )
            if current.is_dir:
                self._check_merge(current, child, ignore)

    # -- mutation -----------------------------------------------------------

    def _place(self, segments: list[str], incoming: PathEntry) -> None:
        """Attach *incoming* at *segments*, creating and merging directories."""
        level = self.root
        for i, seg in enumerate(segments[:-1]):
            node = level.get(seg)
            if node is None:
                node = _directory(seg, "/".join(segments[: i + 1]))
                level[seg] = node
            level = node.children

        current = level.get(segments[-1])
        if current is not None and current.is_dir and incoming.is_dir:
            _merge(current, incoming)
        else:
            level[segments[-1]] = incoming

    def insert_paths(self, paths: Iterable[str | os.PathLike[str]]) -> list[str]:
        """Splice new local file paths into the tree.

        Each path becomes a file with no content hash; an existing file at
        the same path is replaced.  All paths are validated before the tree
        is touched.

        Returns:
            The normalized paths that were inserted.

        Raises:
            InvalidPath: If a path is malformed.
            StructuralConflict: If a path runs through an existing file or
                lands on an existing directory.
        """
        batch = [split_path(p) for p in paths]
        files = {"/".join(s) for s in batch}
        for segments in batch:
            for i in range(1, len(segments)):
                prefix = "/".join(segments[:i])
                if prefix in files:
                    raise StructuralConflict(f"{prefix} is inserted both as a file and a directory")
            self._check_placement(segments, None)

        inserted = []
        for segments in batch:
            path = "/".join(segments)
            self._place(segments, PathEntry(segments[-1], path))
            inserted.append(path)
        logger.debug("Inserted %d path(s)", len(inserted))
        return inserted

    def delete(self, path: str | os.PathLike[str], cleanup: bool = True) -> PathEntry | None:
        """Remove and return the entry at *path* with its whole subtree.

        With *cleanup*, ancestors left without children are removed too, up
        to the root.  Returns ``None`` when the path is not in the tree.
        """
        segments = split_path(path)
        chain: list[dict[str, PathEntry]] = [self.root]
        for seg in segments[:-1]:
            node = chain[-1].get(seg)
            if node is None or node.children is None:
                return None
            chain.append(node.children)

        removed = chain[-1].pop(segments[-1], None)
        if removed is None:
            return None

        if cleanup:
            for depth in range(len(segments) - 1, 0, -1):
                if chain[depth]:
                    break
                del chain[depth - 1][segments[depth - 1]]
        logger.debug("Deleted %s %s", removed.kind, removed.path)
        return removed

    def rename(self, origin_path: str | os.PathLike[str], new_relative_name: str) -> RenameTrace:
        """Move the entry at *origin_path* to *new_relative_name*.

        The new name is resolved against the origin's parent directory
        (``..`` climbs, a leading ``/`` anchors at the root).  A directory
        brings its whole subtree along and every descendant is re-pathed.
        An existing directory at the destination is merged with the moved
        one; an existing file is replaced by a moved file.  Ancestors of the
        origin are kept even if left empty.

        Returns:
            ``{old_path: (new_path, content_hash)}`` for every moved file.

        Raises:
            InvalidPath: Malformed target, or a directory moved into itself.
            NotFound: Nothing exists at *origin_path*.
            StructuralConflict: File and directory would collide at the
                destination.
        """
        origin = normalize_path(origin_path)
        target = resolve_relative(origin, new_relative_name)
        entry = self.get(origin)
        if entry is None:
            raise NotFound(origin)

        if target == origin:
            return {f.path: (f.path, f.content_hash) for f in entry.files()}
        if is_within(target, origin):
            raise InvalidPath(f"Cannot move {origin} into itself ({target})")

        segments = target.split("/")
        self._check_placement(segments, entry, ignore=origin)

        detached = self.delete(origin, cleanup=False)
        trace: RenameTrace = {}
        _repath(detached, target, trace)
        self._place(segments, detached)
        logger.debug("Renamed %s -> %s (%d file(s))", origin, target, len(trace))
        return trace
