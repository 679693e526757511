"""Basic commands: init, branch, ls, cat."""

from __future__ import annotations

import json
import os
import sys

import click

from ..exceptions import IllusionnaError, NotFound, RemoteError
from ..remote import GitRemote
from ..tree import PathEntry, matches
from ._helpers import (
    main,
    _branch_option,
    _format_option,
    _identity_options,
    _open_session,
    _repo_option,
    _require_repo,
    _status,
    _strip_colon,
)


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.option("--branch", "-b", default="main", help="Initial branch name (default: main).")
@click.pass_context
def init(ctx, branch):
    """Create a new bare git repository."""
    repo_path = _require_repo(ctx)
    if os.path.exists(repo_path):
        raise click.ClickException(f"Repository already exists: {repo_path}")
    GitRemote.init(repo_path, branch=branch)
    _status(ctx, f"Initialized {repo_path}")


# ---------------------------------------------------------------------------
# branch
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.argument("name")
@click.option("--from", "source", default="main", show_default=True, help="Branch to start from.")
@_identity_options
@click.pass_context
def branch(ctx, name, source, author, email):
    """Create branch NAME from an existing branch.

    The new branch starts with an empty "Initialize NAME" commit on top of
    the source branch.
    """
    repo_path = _require_repo(ctx)
    try:
        remote = GitRemote(repo_path, author=author, email=email)
        commit = remote.create_branch(name, source)
    except RemoteError as exc:
        raise click.ClickException(str(exc))
    _status(ctx, f"Created {name} from {source}")
    click.echo(commit)


# ---------------------------------------------------------------------------
# ls
# ---------------------------------------------------------------------------

def _render(entries: list[PathEntry], needle: str, long_: bool, depth: int = 0):
    """Yield indented lines for *entries* that match *needle*."""
    for entry in entries:
        if needle and not matches(entry, needle):
            continue
        label = entry.name + ("/" if entry.is_dir else "")
        if long_ and not entry.is_dir:
            label = f"{(entry.content_hash or '-------')[:7]}  {label}"
        yield "  " * depth + label
        if entry.is_dir:
            yield from _render(entry.entries(), needle, long_, depth + 1)


@main.command()
@_repo_option
@click.argument("path", required=False)
@_branch_option
@click.option("--filter", "needle", default="", help="Only show entries whose path contains NEEDLE (case-insensitive).")
@click.option("-l", "--long", "long_", is_flag=True, help="Show short content hashes.")
@_format_option
@click.pass_context
def ls(ctx, path, branch, needle, long_, fmt):
    """Show the tree of a branch (or of the directory PATH).

    \b
    Examples:
        illusionna ls                     # whole tree
        illusionna ls :src                # one directory
        illusionna ls --filter readme     # entries leading to matches
    """
    session = _open_session(ctx, branch)
    if path:
        path = _strip_colon(path)
        try:
            entry = session.tree.get(path)
        except IllusionnaError as exc:
            raise click.ClickException(str(exc))
        if entry is None:
            raise click.ClickException(f"Path not found: {path}")
        entries = entry.entries() if entry.is_dir else [entry]
    else:
        entries = session.tree.entries()

    if fmt == "json":
        files = [f for e in entries for f in e.files() if matches(f, needle)]
        click.echo(json.dumps(
            [{"path": f.path, "hash": f.content_hash} for f in files], indent=2,
        ))
        return
    for line in _render(entries, needle, long_):
        click.echo(line)


# ---------------------------------------------------------------------------
# cat
# ---------------------------------------------------------------------------

@main.command()
@_repo_option
@click.argument("path")
@_branch_option
@click.pass_context
def cat(ctx, path, branch):
    """Print the content of the file at PATH."""
    session = _open_session(ctx, branch)
    try:
        data = session.read(_strip_colon(path))
    except NotFound as exc:
        raise click.ClickException(f"Path not found: {exc}")
    except IsADirectoryError:
        raise click.ClickException(f"{_strip_colon(path)} is a directory")
    except IllusionnaError as exc:
        raise click.ClickException(str(exc))
    sys.stdout.buffer.write(data)
