"""Pending edits against a baseline tree, and their flattening to tree writes."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

logger = logging.getLogger(__name__)

__all__ = [
    "ContentHash", "AssignContent", "EraseContent", "ChangeRecord",
    "Changeset", "TreeWriteInstruction", "flatten", "format_commit_message",
]

GIT_FILEMODE_BLOB = "100644"


class ContentHash(str):
    """A blob hash used as assigned content to mark it as already stored remotely.

    Subclass of :class:`str`.  Assigning a ``ContentHash`` instead of raw
    bytes means nothing has to be uploaded when the change is flattened.
    """
    __slots__ = ()

    def __repr__(self) -> str:
        return f"ContentHash({str(self)!r})"


@dataclass(frozen=True)
class AssignContent:
    """Write *content* at a path: local ``bytes`` or a remote :class:`ContentHash`."""
    content: bytes | ContentHash

    @property
    def is_local(self) -> bool:
        return not isinstance(self.content, ContentHash)


@dataclass(frozen=True)
class EraseContent:
    """Delete a path that exists in the baseline."""


ChangeRecord = AssignContent | EraseContent


@dataclass(frozen=True)
class TreeWriteInstruction:
    """One entry of a tree-creation request.  ``sha=None`` deletes *path*."""
    path: str
    sha: str | None
    mode: str = GIT_FILEMODE_BLOB
    type: str = "blob"

    def to_dict(self) -> dict:
        return {"path": self.path, "mode": self.mode, "type": self.type, "sha": self.sha}


class Changeset:
    """Overlay of pending operations keyed by path.

    Only paths present in *baseline_paths* (the remote tree at load time)
    are ever tombstoned; a local addition that is removed again simply
    disappears from :attr:`pending`.
    """

    def __init__(self, baseline_paths: Iterable[str] = ()):
        self.baseline_paths: frozenset[str] = frozenset(baseline_paths)
        self._pending: dict[str, ChangeRecord] = {}

    def __repr__(self) -> str:
        return f"Changeset(baseline={len(self.baseline_paths)}, pending={len(self._pending)})"

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> Mapping[str, ChangeRecord]:
        """Read-only view of the pending operations, in recording order."""
        return MappingProxyType(self._pending)

    def view(self, path: str) -> bytes | ContentHash | None:
        """Return the content assigned to *path*, or ``None``."""
        record = self._pending.get(path)
        if isinstance(record, AssignContent):
            return record.content
        return None

    def record_assign(self, path: str, content: bytes | ContentHash) -> None:
        self._pending[path] = AssignContent(content)

    def record_erase(self, path: str) -> None:
        if path in self.baseline_paths:
            self._pending[path] = EraseContent()
        else:
            self._pending.pop(path, None)

    def record_rename(self, trace: Mapping[str, tuple[str, str]]) -> None:
        """Apply a rename trace ``{old: (new, content_hash)}``.

        Locally assigned content travels with the file.  Unmodified remote
        content is carried by hash.  Every vacated path goes through
        :meth:`record_erase`, so baseline paths are tombstoned and local
        additions vanish.  Records are read before any is written, since a
        moved file's new path may be another moved file's old path.
        """
        moves = [(old, new, content_hash) for old, (new, content_hash) in trace.items() if old != new]
        records = {old: self._pending.get(old) for old, _, _ in moves}
        for old, _, _ in moves:
            self.record_erase(old)
        for old, new, content_hash in moves:
            record = records[old]
            if isinstance(record, AssignContent):
                self._pending[new] = record
            else:
                self._pending[new] = AssignContent(ContentHash(content_hash))

    def has_pending_changes(self) -> bool:
        return bool(self._pending)

    def clear(self) -> None:
        self._pending.clear()

    def summary(self) -> tuple[list[str], list[str]]:
        """Return ``(written_paths, erased_paths)``, each sorted."""
        written = sorted(p for p, r in self._pending.items() if isinstance(r, AssignContent))
        erased = sorted(p for p, r in self._pending.items() if isinstance(r, EraseContent))
        return written, erased


def flatten(changeset: Changeset, upload_blob: Callable[[bytes], str]) -> list[TreeWriteInstruction]:
    """Turn pending changes into tree-write instructions, ordered by path.

    Local bytes are uploaded through *upload_blob* to obtain their hash;
    content already stored remotely is referenced directly.
    """
    instructions = []
    for path in sorted(changeset.pending):
        record = changeset.pending[path]
        if isinstance(record, EraseContent):
            instructions.append(TreeWriteInstruction(path, None))
        elif isinstance(record.content, ContentHash):
            instructions.append(TreeWriteInstruction(path, str(record.content)))
        else:
            sha = upload_blob(record.content)
            logger.debug("Uploaded %s (%d bytes) as %s", path, len(record.content), sha)
            instructions.append(TreeWriteInstruction(path, sha))
    return instructions


def format_commit_message(changeset: Changeset, message: str | None = None) -> str:
    """Return *message*, or a summary of the pending changes when it is empty."""
    if message:
        return message
    written, erased = changeset.summary()
    total = len(written) + len(erased)
    if total == 0:
        return "No changes"
    if total == 1:
        return f"+ {written[0]}" if written else f"- {erased[0]}"
    return f"Batch: {total} changes (+{len(written)} -{len(erased)})"
