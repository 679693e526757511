"""edit: apply a script of file operations to a branch and commit once."""

from __future__ import annotations

import json
import shlex

import click

from ..changeset import TreeWriteInstruction
from ..exceptions import IllusionnaError, StaleBranchError
from ..session import Session
from ._helpers import (
    main,
    _branch_option,
    _format_option,
    _identity_options,
    _open_session,
    _repo_option,
    _status,
    _strip_colon,
)

# op name -> number of arguments
_OPS = {"put": 2, "write": 2, "mv": 2, "rm": 1}


def _parse_script(lines) -> list[tuple[int, str, list[str]]]:
    """Parse edit-script lines into ``(lineno, op, args)``, validating arity."""
    ops = []
    for lineno, line in enumerate(lines, 1):
        try:
            words = shlex.split(line, comments=True)
        except ValueError as exc:
            raise click.ClickException(f"line {lineno}: {exc}")
        if not words:
            continue
        op, args = words[0], words[1:]
        if op not in _OPS:
            raise click.ClickException(f"line {lineno}: unknown operation {op!r}")
        if len(args) != _OPS[op]:
            raise click.ClickException(
                f"line {lineno}: {op} takes {_OPS[op]} argument(s), got {len(args)}"
            )
        ops.append((lineno, op, args))
    return ops


def _apply(ctx, session: Session, op: str, args: list[str]) -> None:
    if op == "put":
        local, dest = args
        try:
            with open(local, "rb") as f:
                data = f.read()
        except OSError as exc:
            raise click.ClickException(f"Cannot read {local}: {exc.strerror}")
        session.write(_strip_colon(dest), data)
        _status(ctx, f"put {local} -> {_strip_colon(dest)}")
    elif op == "write":
        dest, text = args
        session.write(_strip_colon(dest), text.encode())
        _status(ctx, f"write {_strip_colon(dest)}")
    elif op == "mv":
        src, new_name = args
        trace = session.rename(_strip_colon(src), new_name)
        for old, (new, _) in trace.items():
            _status(ctx, f"mv {old} -> {new}")
    elif op == "rm":
        path = _strip_colon(args[0])
        if session.delete(path) is None:
            _status(ctx, f"rm {path}: nothing to remove")
        else:
            _status(ctx, f"rm {path}")


def _format_instruction(inst: TreeWriteInstruction) -> str:
    if inst.sha is None:
        return f"- {inst.path}"
    return f"+ {inst.path} {inst.sha[:7]}"


@main.command()
@_repo_option
@click.argument("script", type=click.File("r"), default="-")
@_branch_option
@click.option("-m", "--message", default=None, help="Commit message (auto-generated if omitted).")
@click.option("-n", "--dry-run", is_flag=True, help="Print the tree writes instead of committing.")
@_identity_options
@_format_option
@click.pass_context
def edit(ctx, script, branch, message, dry_run, author, email, fmt):
    """Apply the edit SCRIPT (default: stdin) to a branch as one commit.

    One operation per line, shell-quoted; '#' starts a comment.

    \b
        put LOCAL DEST       copy a local file into the tree
        write DEST TEXT      write TEXT as the content of DEST
        mv PATH NEW_NAME     rename/move; NEW_NAME is relative to PATH's directory
        rm PATH              delete a file or a whole directory

    Nothing is pushed if any line fails.  With --dry-run, new content is
    still stored as loose blobs but the branch is not moved.
    """
    ops = _parse_script(script)
    session = _open_session(ctx, branch, author=author, email=email)
    for lineno, op, args in ops:
        try:
            _apply(ctx, session, op, args)
        except IllusionnaError as exc:
            raise click.ClickException(f"line {lineno}: {op}: {exc}")

    if not session.dirty:
        _status(ctx, "No changes")
        return

    if dry_run:
        instructions = session.instructions()
        if fmt == "json":
            click.echo(json.dumps([i.to_dict() for i in instructions], indent=2))
        else:
            for inst in instructions:
                click.echo(_format_instruction(inst))
        return

    try:
        commit = session.commit(message)
    except StaleBranchError as exc:
        raise click.ClickException(str(exc))
    if fmt == "json":
        click.echo(json.dumps({"commit": commit, "branch": branch}))
    else:
        click.echo(commit)
