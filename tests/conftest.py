"""Shared fixtures for illusionna tests."""

import pytest
from click.testing import CliRunner

from illusionna.changeset import TreeWriteInstruction
from illusionna.remote import GitRemote


def seed(remote, files, branch="main"):
    """Commit *files* ({path: bytes}) on top of *branch* and return the commit."""
    commit, tree = remote.head(branch)
    instructions = [TreeWriteInstruction(p, remote.upload_blob(d)) for p, d in files.items()]
    new_tree = remote.create_tree(tree, instructions)
    new_commit = remote.create_commit("seed", new_tree, commit)
    remote.advance_ref(branch, commit, new_commit)
    return new_commit


@pytest.fixture
def remote(tmp_path):
    """A bare repository with an empty 'main' branch."""
    return GitRemote.init(tmp_path / "test.git")


@pytest.fixture
def remote_with_files(remote):
    """Repo with a.txt, docs/readme.md, docs/guide/intro.md and src/main.py on 'main'."""
    seed(remote, {
        "a.txt": b"alpha\n",
        "docs/readme.md": b"# readme\n",
        "docs/guide/intro.md": b"intro\n",
        "src/main.py": b"print('hi')\n",
    })
    return remote


# ---------------------------------------------------------------------------
# CLI fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def repo_path(tmp_path):
    """Return a path to a not-yet-created repo."""
    return str(tmp_path / "cli.git")


@pytest.fixture
def repo_with_files(repo_path):
    """Repo with hello.txt and data/data.bin on 'main'; returns its path."""
    remote = GitRemote.init(repo_path)
    seed(remote, {"hello.txt": b"hello world\n", "data/data.bin": b"\x00\x01\x02"})
    return repo_path


@pytest.fixture
def commit_files():
    """Return the :func:`seed` helper for tests that commit behind a session's back."""
    return seed
