"""Exceptions for illusionna."""


class IllusionnaError(Exception):
    """Base class for errors raised by illusionna."""


class InvalidPath(IllusionnaError, ValueError):
    """Raised for a malformed path or a rename target that escapes the tree."""


class NotFound(IllusionnaError, FileNotFoundError):
    """Raised when an operation targets a path absent from the tree."""


class StructuralConflict(IllusionnaError):
    """Raised when a file and a directory would collide at the same path.

    The tree and changeset are left untouched.
    """


class StaleSessionError(IllusionnaError):
    """Raised when a result tagged with an older session generation is applied.

    Reload the session and replay the edit.
    """


class StaleBranchError(IllusionnaError):
    """Raised when a commit is pushed to a branch that advanced since load.

    Call :meth:`~illusionna.Session.reset` to refetch the branch and retry.
    """


class RemoteError(IllusionnaError):
    """Raised when the remote store cannot satisfy a request."""
