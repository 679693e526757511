"""Remote content store: the contract the session talks to, and a dulwich backend.

The session only ever sees the :class:`RemoteStore` protocol.  :class:`GitRemote`
implements it on top of a bare git repository, which is enough to drive the
whole fetch / edit / commit cycle locally and in tests.
"""

from __future__ import annotations

import logging
import stat
import time
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Iterator, NamedTuple, Protocol

from dulwich.objects import Blob, Commit, Tree
from dulwich.repo import Repo

from ._lock import repo_lock
from .changeset import TreeWriteInstruction
from .exceptions import RemoteError, StaleBranchError

logger = logging.getLogger(__name__)

__all__ = ["TreePart", "RemoteStore", "GitRemote", "rebuild_tree"]

GIT_FILEMODE_TREE = 0o040000
GIT_FILEMODE_BLOB = 0o100644


class TreePart(NamedTuple):
    """A blob listed by :meth:`RemoteStore.fetch_tree`."""

    content_hash: str
    path: str
    remote_ref: str


class RemoteStore(Protocol):
    """Operations the session needs from the remote side."""

    def fetch_tree(self, ref: str) -> list[TreePart]: ...

    def head(self, ref: str) -> tuple[str, str]: ...

    def read_blob(self, sha: str) -> bytes: ...

    def upload_blob(self, data: bytes) -> str: ...

    def create_tree(self, base_tree: str | None, instructions: Iterable[TreeWriteInstruction]) -> str: ...

    def create_commit(self, message: str, tree: str, parent: str | None) -> str: ...

    def advance_ref(self, ref: str, old_sha: str, new_sha: str) -> None: ...


def rebuild_tree(
    repo: Repo,
    base_tree: bytes | None,
    writes: dict[str, tuple[bytes, int]],
    removes: set[str],
) -> bytes:
    """Rebuild a tree with writes and removes applied.

    Only the ancestor chain from changed leaves to root is rebuilt; sibling
    subtrees are shared by hash.  Removing a missing path is a no-op and a
    directory left empty is dropped from its parent.

    Args:
        repo: The dulwich repository.
        base_tree: SHA of the existing tree (or None for empty).
        writes: Mapping of normalized path -> (blob sha, filemode).
        removes: Set of normalized paths to remove.

    Returns:
        SHA of the new root tree.
    """
    sub_writes: dict[str, dict[str, tuple[bytes, int]]] = defaultdict(dict)
    leaf_writes: dict[str, tuple[bytes, int]] = {}
    sub_removes: dict[str, set[str]] = defaultdict(set)
    leaf_removes: set[str] = set()

    for path, value in writes.items():
        parts = path.split("/", 1)
        if len(parts) == 1:
            leaf_writes[parts[0]] = value
        else:
            sub_writes[parts[0]][parts[1]] = value

    for path in removes:
        parts = path.split("/", 1)
        if len(parts) == 1:
            leaf_removes.add(parts[0])
        else:
            sub_removes[parts[0]].add(parts[1])

    entries: dict[bytes, tuple[int, bytes]] = {}
    if base_tree is not None:
        for entry in repo.object_store[base_tree].iteritems():
            entries[entry.path] = (entry.mode, entry.sha)

    for name, (sha, mode) in leaf_writes.items():
        entries[name.encode()] = (mode, sha)

    for name in leaf_removes:
        entries.pop(name.encode(), None)

    for subdir in set(sub_writes) | set(sub_removes):
        existing = entries.get(subdir.encode())
        existing_tree = None
        if existing is not None and stat.S_ISDIR(existing[0]):
            existing_tree = existing[1]
        elif subdir not in sub_writes:
            continue

        new_subtree = rebuild_tree(
            repo,
            existing_tree,
            sub_writes.get(subdir, {}),
            sub_removes.get(subdir, set()),
        )

        if len(repo.object_store[new_subtree]) == 0:
            entries.pop(subdir.encode(), None)
        else:
            entries[subdir.encode()] = (GIT_FILEMODE_TREE, new_subtree)

    tree = Tree()
    for name, (mode, sha) in sorted(entries.items()):
        tree.add(name, mode, sha)
    repo.object_store.add_object(tree)
    return tree.id


class GitRemote:
    """A :class:`RemoteStore` backed by a bare git repository."""

    def __init__(self, path: str | Path, *, author: str = "illusionna", email: str = "illusionna@localhost"):
        path = Path(path)
        if not path.exists():
            raise RemoteError(f"Repository not found: {path}")
        self.path = str(path)
        self._repo = Repo(self.path)
        self._identity = f"{author} <{email}>".encode()

    def __repr__(self) -> str:
        return f"GitRemote({self.path!r})"

    @classmethod
    def init(
        cls,
        path: str | Path,
        *,
        branch: str | None = "main",
        author: str = "illusionna",
        email: str = "illusionna@localhost",
    ) -> GitRemote:
        """Create a bare repository, with an empty initial commit on *branch*."""
        Repo.init_bare(str(path), mkdir=True)
        remote = cls(path, author=author, email=email)
        if branch is not None:
            tree = Tree()
            remote._repo.object_store.add_object(tree)
            commit = remote.create_commit(f"Initialize {branch}", tree.id.decode(), None)
            remote._repo.refs[_branch_ref(branch)] = commit.encode()
            remote._repo.refs.set_symbolic_ref(b"HEAD", _branch_ref(branch))
        return remote

    # -- reads --------------------------------------------------------------

    def head(self, ref: str) -> tuple[str, str]:
        """Return ``(commit_sha, tree_sha)`` for branch *ref*."""
        try:
            commit_sha = self._repo.refs[_branch_ref(ref)]
        except KeyError:
            raise RemoteError(f"Branch not found: {ref}")
        commit = self._repo.object_store[commit_sha]
        return commit_sha.decode(), commit.tree.decode()

    def fetch_tree(self, ref: str) -> list[TreePart]:
        """List every blob reachable from branch *ref*, recursively."""
        _, tree_sha = self.head(ref)
        parts = [
            TreePart(sha.decode(), path, f"blobs/{sha.decode()}")
            for path, sha in self._walk(tree_sha.encode(), "")
        ]
        logger.debug("Fetched %d blob(s) from %s", len(parts), ref)
        return parts

    def _walk(self, tree_sha: bytes, prefix: str) -> Iterator[tuple[str, bytes]]:
        for entry in self._repo.object_store[tree_sha].iteritems():
            path = f"{prefix}/{entry.path.decode()}" if prefix else entry.path.decode()
            if stat.S_ISDIR(entry.mode):
                yield from self._walk(entry.sha, path)
            elif stat.S_ISREG(entry.mode):
                yield path, entry.sha

    def read_blob(self, sha: str) -> bytes:
        try:
            obj = self._repo.object_store[sha.encode()]
        except KeyError:
            raise RemoteError(f"Blob not found: {sha}")
        if not isinstance(obj, Blob):
            raise RemoteError(f"Not a blob: {sha}")
        return obj.data

    # -- writes -------------------------------------------------------------

    def upload_blob(self, data: bytes) -> str:
        blob = Blob.from_string(data)
        self._repo.object_store.add_object(blob)
        return blob.id.decode()

    def create_tree(self, base_tree: str | None, instructions: Iterable[TreeWriteInstruction]) -> str:
        """Write a new tree from *base_tree* with *instructions* applied."""
        writes: dict[str, tuple[bytes, int]] = {}
        removes: set[str] = set()
        for inst in instructions:
            if inst.sha is None:
                removes.add(inst.path)
            else:
                writes[inst.path] = (inst.sha.encode(), int(inst.mode, 8))
        base = base_tree.encode() if base_tree is not None else None
        tree = rebuild_tree(self._repo, base, writes, removes).decode()
        logger.debug("Created tree %s (%d write(s), %d removal(s))", tree, len(writes), len(removes))
        return tree

    def create_commit(self, message: str, tree: str, parent: str | None) -> str:
        c = Commit()
        c.tree = tree.encode()
        c.parents = [parent.encode()] if parent is not None else []
        c.author = c.committer = self._identity
        now = int(time.time())
        c.author_time = c.commit_time = now
        c.author_timezone = c.commit_timezone = 0
        msg = message.encode()
        if not msg.endswith(b"\n"):
            msg += b"\n"
        c.message = msg
        c.encoding = b"UTF-8"
        self._repo.object_store.add_object(c)
        return c.id.decode()

    def advance_ref(self, ref: str, old_sha: str, new_sha: str) -> None:
        """Move branch *ref* from *old_sha* to *new_sha*.

        Raises:
            StaleBranchError: If the branch no longer points at *old_sha*.
        """
        name = _branch_ref(ref)
        with repo_lock(self.path):
            if not self._repo.refs.set_if_equals(name, old_sha.encode(), new_sha.encode()):
                raise StaleBranchError(f"Branch {ref!r} has advanced since it was loaded")
        logger.debug("Advanced %s %s -> %s", ref, old_sha[:7], new_sha[:7])

    def create_branch(self, name: str, source: str = "main") -> str:
        """Start branch *name* from *source* with an empty "Initialize" commit.

        The new commit keeps the tree of *source* and has its head as parent.
        Returns the commit hash.

        Raises:
            RemoteError: If *source* is missing or *name* already exists.
        """
        parent, tree = self.head(source)
        commit = self.create_commit(f"Initialize {name}", tree, parent)
        with repo_lock(self.path):
            if not self._repo.refs.add_if_new(_branch_ref(name), commit.encode()):
                raise RemoteError(f"Branch already exists: {name}")
        logger.debug("Created branch %s from %s at %s", name, source, commit[:7])
        return commit


def _branch_ref(name: str) -> bytes:
    return f"refs/heads/{name}".encode()

