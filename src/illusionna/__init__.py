from .tree import PathEntry, PathTree, matches
from .changeset import Changeset, AssignContent, EraseContent, ContentHash, TreeWriteInstruction, flatten
from .remote import RemoteStore, GitRemote, TreePart
from .session import Session
from .exceptions import (
    IllusionnaError, InvalidPath, NotFound, StructuralConflict,
    StaleSessionError, StaleBranchError, RemoteError,
)

__all__ = [
    "PathEntry", "PathTree", "matches",
    "Changeset", "AssignContent", "EraseContent", "ContentHash", "TreeWriteInstruction", "flatten",
    "RemoteStore", "GitRemote", "TreePart", "Session",
    "IllusionnaError", "InvalidPath", "NotFound", "StructuralConflict",
    "StaleSessionError", "StaleBranchError", "RemoteError",
]
