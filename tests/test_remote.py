"""Tests for the dulwich-backed remote store."""

import pytest

from illusionna.changeset import TreeWriteInstruction
from illusionna.exceptions import RemoteError, StaleBranchError
from illusionna.remote import GitRemote, TreePart


class TestInit:
    def test_initial_branch_is_empty(self, remote):
        assert remote.fetch_tree("main") == []
        commit, tree = remote.head("main")
        assert len(commit) == 40
        assert len(tree) == 40

    def test_open_existing(self, remote):
        again = GitRemote(remote.path)
        assert again.head("main") == remote.head("main")

    def test_open_missing(self, tmp_path):
        with pytest.raises(RemoteError):
            GitRemote(tmp_path / "missing.git")

    def test_no_branch(self, tmp_path):
        remote = GitRemote.init(tmp_path / "bare.git", branch=None)
        with pytest.raises(RemoteError):
            remote.head("main")


class TestFetchTree:
    def test_lists_blobs_recursively(self, remote_with_files):
        parts = remote_with_files.fetch_tree("main")
        assert sorted(p.path for p in parts) == [
            "a.txt", "docs/guide/intro.md", "docs/readme.md", "src/main.py",
        ]
        assert all(isinstance(p, TreePart) for p in parts)
        part = next(p for p in parts if p.path == "a.txt")
        assert part.remote_ref == f"blobs/{part.content_hash}"
        assert remote_with_files.read_blob(part.content_hash) == b"alpha\n"

    def test_unknown_branch(self, remote):
        with pytest.raises(RemoteError):
            remote.fetch_tree("nope")


class TestBlobs:
    def test_upload_is_idempotent(self, remote):
        assert remote.upload_blob(b"same") == remote.upload_blob(b"same")

    def test_upload_matches_git_hash(self, remote):
        # git hash-object of an empty file
        assert remote.upload_blob(b"") == "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"

    def test_read_missing(self, remote):
        with pytest.raises(RemoteError):
            remote.read_blob("0" * 40)

    def test_read_non_blob(self, remote):
        _, tree = remote.head("main")
        with pytest.raises(RemoteError):
            remote.read_blob(tree)


class TestCreateTree:
    def test_write_and_delete(self, remote_with_files):
        r = remote_with_files
        _, base = r.head("main")
        sha = r.upload_blob(b"new")
        tree = r.create_tree(base, [
            TreeWriteInstruction("docs/readme.md", None),
            TreeWriteInstruction("docs/new.md", sha),
        ])
        listing = _listing(r, tree)
        assert "docs/readme.md" not in listing
        assert listing["docs/new.md"] == sha
        assert "a.txt" in listing

    def test_delete_prunes_empty_directories(self, remote_with_files):
        r = remote_with_files
        _, base = r.head("main")
        tree = r.create_tree(base, [TreeWriteInstruction("src/main.py", None)])
        assert not any(p.startswith("src") for p in _listing(r, tree))

    def test_delete_missing_is_noop(self, remote_with_files):
        r = remote_with_files
        _, base = r.head("main")
        assert r.create_tree(base, [TreeWriteInstruction("nope/x.txt", None)]) == base

    def test_siblings_shared(self, remote_with_files):
        r = remote_with_files
        _, base = r.head("main")
        tree = r.create_tree(base, [TreeWriteInstruction("a.txt", r.upload_blob(b"changed"))])
        assert tree != base
        old_docs = r._repo.object_store[base.encode()][b"docs"]
        new_docs = r._repo.object_store[tree.encode()][b"docs"]
        assert old_docs == new_docs

    def test_file_replaces_deleted_directory(self, remote_with_files):
        r = remote_with_files
        _, base = r.head("main")
        sha = r.upload_blob(b"now a file")
        tree = r.create_tree(base, [
            TreeWriteInstruction("src/main.py", None),
            TreeWriteInstruction("src", sha),
        ])
        assert _listing(r, tree)["src"] == sha

    def test_from_empty(self, remote):
        sha = remote.upload_blob(b"x")
        tree = remote.create_tree(None, [TreeWriteInstruction("d/x", sha)])
        assert _listing(remote, tree) == {"d/x": sha}


class TestCommitAndRef:
    def test_advance(self, remote):
        commit, tree = remote.head("main")
        new = remote.create_commit("msg", tree, commit)
        remote.advance_ref("main", commit, new)
        assert remote.head("main")[0] == new
        c = remote._repo.object_store[new.encode()]
        assert c.message == b"msg\n"
        assert c.parents == [commit.encode()]
        assert c.author == b"illusionna <illusionna@localhost>"

    def test_stale(self, remote):
        commit, tree = remote.head("main")
        first = remote.create_commit("one", tree, commit)
        second = remote.create_commit("two", tree, commit)
        remote.advance_ref("main", commit, first)
        with pytest.raises(StaleBranchError):
            remote.advance_ref("main", commit, second)
        assert remote.head("main")[0] == first


class TestCreateBranch:
    def test_starts_from_source(self, remote_with_files):
        main_commit, main_tree = remote_with_files.head("main")
        commit = remote_with_files.create_branch("feature")
        assert remote_with_files.head("feature") == (commit, main_tree)
        c = remote_with_files._repo.object_store[commit.encode()]
        assert c.message == b"Initialize feature\n"
        assert c.parents == [main_commit.encode()]
        assert remote_with_files.head("main")[0] == main_commit

    def test_existing_branch(self, remote):
        remote.create_branch("feature")
        with pytest.raises(RemoteError, match="already exists"):
            remote.create_branch("feature")

    def test_missing_source(self, remote):
        with pytest.raises(RemoteError, match="Branch not found"):
            remote.create_branch("feature", source="nope")
        with pytest.raises(RemoteError):
            remote.head("feature")


def _listing(remote, tree):
    """Return {path: blob sha} for every blob under *tree*."""
    return {path: sha.decode() for path, sha in remote._walk(tree.encode(), "")}
