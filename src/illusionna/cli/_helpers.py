"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import logging

import click

from ..exceptions import RemoteError
from ..remote import GitRemote
from ..session import Session


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _strip_colon(raw: str) -> str:
    """Strip an optional leading ':' from a repo-side path."""
    return raw[1:] if raw.startswith(":") else raw


def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _store_repo(ctx, param, value):
    """Click callback: store --repo value in the context."""
    ctx.ensure_object(dict)
    if value is not None:
        ctx.obj["repo_path"] = value
    return value


def _repo_option(f):
    """Shared --repo/-r option decorator for all commands."""
    return click.option(
        "--repo", "-r", type=click.Path(), envvar="ILLUSIONNA_REPO",
        help="Path to bare git repository (or set ILLUSIONNA_REPO).",
        expose_value=False, callback=_store_repo, is_eager=True,
    )(f)


def _branch_option(f):
    return click.option(
        "--branch", "-b", default="main", show_default=True, envvar="ILLUSIONNA_BRANCH",
        help="Branch to edit (or set ILLUSIONNA_BRANCH).",
    )(f)


def _identity_options(f):
    f = click.option("--email", default="illusionna@localhost", envvar="ILLUSIONNA_EMAIL",
                     help="Committer email (or set ILLUSIONNA_EMAIL).")(f)
    f = click.option("--author", default="illusionna", envvar="ILLUSIONNA_AUTHOR",
                     help="Committer name (or set ILLUSIONNA_AUTHOR).")(f)
    return f


def _format_option(f):
    return click.option(
        "--format", "fmt", type=click.Choice(["text", "json"]), default="text",
        show_default=True, help="Output format.",
    )(f)


def _require_repo(ctx) -> str:
    """Get the repo path from context, raising a clear error if missing."""
    repo = ctx.obj.get("repo_path")
    if not repo:
        raise click.ClickException(
            "No repository specified. Use --repo or set ILLUSIONNA_REPO."
        )
    return repo


def _open_session(ctx, branch: str, author: str = "illusionna", email: str = "illusionna@localhost") -> Session:
    """Open the repo from context and load *branch* into a new session."""
    repo_path = _require_repo(ctx)
    try:
        remote = GitRemote(repo_path, author=author, email=email)
        session = Session.load(remote, branch)
    except RemoteError as exc:
        raise click.ClickException(str(exc))
    _status(ctx, f"Loaded {branch} at {session.base_commit[:7]}")
    return session


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--repo", "-r", type=click.Path(), envvar="ILLUSIONNA_REPO",
              help="Path to bare git repository (or set ILLUSIONNA_REPO).",
              expose_value=False, callback=_store_repo, is_eager=True)
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, verbose):
    """illusionna — edit a git branch without a working tree.

    The branch is fetched once, edits are applied to a local copy of its
    tree, and everything is pushed back as a single commit.

    \b
    Quick start:
      illusionna init -r data.git
      echo 'put notes.txt docs/notes.txt' | illusionna edit -r data.git -
      illusionna ls -r data.git
      illusionna cat -r data.git :docs/notes.txt

    \b
    Repo paths may be prefixed with ':' (e.g. :path/to/file).
    Set ILLUSIONNA_REPO to avoid passing --repo on every call.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
