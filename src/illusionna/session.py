"""Session: one editing pass over a branch, from fetch to commit."""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Mapping

from .changeset import Changeset, ContentHash, TreeWriteInstruction, flatten, format_commit_message
from .exceptions import NotFound, StaleSessionError
from .paths import normalize_path
from .remote import RemoteStore
from .tree import PathEntry, PathTree, RenameTrace

logger = logging.getLogger(__name__)

__all__ = ["Session"]


class Session:
    """Owns the path tree and changeset of a branch being edited.

    Every load or reset starts a new :attr:`generation`.  A caller that
    hands work to a background task should tag the result with the
    generation it started from and call :meth:`check_generation` before
    applying it.
    """

    def __init__(self, remote: RemoteStore, branch: str = "main"):
        self.remote = remote
        self.branch = branch
        self.tree = PathTree()
        self.changes = Changeset()
        self.base_commit: str | None = None
        self.base_tree: str | None = None
        self.generation = ""

    def __repr__(self) -> str:
        return f"Session({self.remote!r}, {self.branch!r}, pending={len(self.changes)})"

    @classmethod
    def load(cls, remote: RemoteStore, branch: str = "main") -> Session:
        """Fetch *branch* from *remote* and return a session ready for edits."""
        session = cls(remote, branch)
        session.reload()
        return session

    def reload(self) -> None:
        """Replace the tree with a fresh fetch and drop all pending changes."""
        commit, tree = self.remote.head(self.branch)
        parts = self.remote.fetch_tree(self.branch)
        self.tree = PathTree.build(parts)
        self.changes = Changeset(part.path for part in parts)
        self.base_commit, self.base_tree = commit, tree
        self.generation = uuid.uuid4().hex
        logger.debug("Loaded %s at %s (%d file(s))", self.branch, commit[:7], len(parts))

    def reset(self) -> None:
        """Discard pending changes and refetch the branch."""
        self.reload()

    def check_generation(self, generation: str) -> None:
        """Raise :class:`StaleSessionError` unless *generation* is current."""
        if generation != self.generation:
            raise StaleSessionError(
                f"Result for generation {generation[:8]} does not match session {self.generation[:8]}"
            )

    @property
    def dirty(self) -> bool:
        return self.changes.has_pending_changes()

    # -- edits --------------------------------------------------------------

    def import_files(self, files: Mapping[str, bytes]) -> list[str]:
        """Add or overwrite files with local content."""
        paths = self.tree.insert_paths(files)
        for path, data in zip(paths, files.values()):
            self.changes.record_assign(path, data)
        return paths

    def write(self, path: str | os.PathLike[str], data: bytes) -> str:
        return self.import_files({os.fspath(path): data})[0]

    def rename(self, path: str | os.PathLike[str], new_name: str) -> RenameTrace:
        """Rename or move *path*; *new_name* is relative to its directory."""
        trace = self.tree.rename(path, new_name)
        self.changes.record_rename(trace)
        return trace

    def delete(self, path: str | os.PathLike[str]) -> PathEntry | None:
        """Remove *path* (a file or a whole directory).

        Returns the removed entry, or ``None`` if nothing was there.
        """
        removed = self.tree.delete(path, cleanup=True)
        if removed is None:
            logger.debug("Nothing to delete at %s", path)
            return None
        for entry in removed.files():
            self.changes.record_erase(entry.path)
        return removed

    # -- reads --------------------------------------------------------------

    def read(self, path: str | os.PathLike[str]) -> bytes:
        """Return the current content of the file at *path*.

        Raises:
            NotFound: If *path* is not in the tree.
            IsADirectoryError: If *path* is a directory.
        """
        path = normalize_path(path)
        entry = self.tree.get(path)
        if entry is None:
            raise NotFound(path)
        if entry.is_dir:
            raise IsADirectoryError(path)
        content = self.changes.view(path)
        if isinstance(content, ContentHash):
            return self.remote.read_blob(content)
        if content is not None:
            return content
        if not entry.content_hash:
            raise NotFound(path)
        return self.remote.read_blob(entry.content_hash)

    def instructions(self) -> list[TreeWriteInstruction]:
        """Flatten pending changes, uploading local content as needed."""
        return flatten(self.changes, self.remote.upload_blob)

    # -- commit -------------------------------------------------------------

    def commit(self, message: str | None = None) -> str:
        """Push pending changes as one commit on the branch and reload.

        Returns the new commit hash, or the current one if nothing is pending.

        Raises:
            StaleBranchError: If the branch advanced since the session loaded.
        """
        if not self.dirty:
            return self.base_commit
        final_message = format_commit_message(self.changes, message)
        instructions = self.instructions()
        tree = self.remote.create_tree(self.base_tree, instructions)
        commit = self.remote.create_commit(final_message, tree, self.base_commit)
        self.remote.advance_ref(self.branch, self.base_commit, commit)
        logger.info("Committed %d change(s) to %s as %s", len(instructions), self.branch, commit[:7])
        self.reload()
        return commit
