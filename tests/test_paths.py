"""Tests for illusionna.paths."""

import pytest

from illusionna.exceptions import InvalidPath
from illusionna.paths import is_within, normalize_path, parent_path, resolve_relative


class TestNormalizePath:
    def test_simple(self):
        assert normalize_path("foo/bar") == "foo/bar"

    def test_strips_slashes(self):
        assert normalize_path("/foo/bar/") == "foo/bar"

    def test_rejects_empty(self):
        with pytest.raises(InvalidPath):
            normalize_path("")

    def test_rejects_dotdot(self):
        with pytest.raises(InvalidPath):
            normalize_path("foo/../bar")

    def test_rejects_empty_segment(self):
        with pytest.raises(InvalidPath):
            normalize_path("foo//bar")

    def test_invalid_path_is_value_error(self):
        with pytest.raises(ValueError):
            normalize_path("./x")


class TestResolveRelative:
    def test_sibling(self):
        assert resolve_relative("a/b.txt", "c.txt") == "a/c.txt"

    def test_parent(self):
        assert resolve_relative("a/b.txt", "../d.txt") == "d.txt"

    def test_top_level_origin(self):
        assert resolve_relative("b.txt", "sub/b.txt") == "sub/b.txt"

    def test_collapses_dot_and_double_slash(self):
        assert resolve_relative("a/b/c.txt", ".//x/./y.txt") == "a/b/x/y.txt"

    def test_leading_slash_is_root_relative(self):
        assert resolve_relative("a/b/c.txt", "/top.txt") == "top.txt"

    @pytest.mark.parametrize("name", ["", "dir/", "x/.", "..", "name."])
    def test_rejects_directory_markers(self, name):
        with pytest.raises(InvalidPath):
            resolve_relative("a/b.txt", name)

    def test_rejects_escape_above_root(self):
        with pytest.raises(InvalidPath):
            resolve_relative("a/b.txt", "../../c.txt")


class TestHelpers:
    def test_parent_path(self):
        assert parent_path("a/b/c") == "a/b"
        assert parent_path("a") == ""

    def test_is_within(self):
        assert is_within("a/b", "a")
        assert is_within("a", "a")
        assert not is_within("ab", "a")
