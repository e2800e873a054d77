from __future__ import annotations

import os

from assetrepo.paths import is_root, join_path, leaf_name, normalize_path, parent_path, sep


def _p(path: str) -> str:
    return path.replace("/", os.sep)


def test_sep_matches_platform() -> None:
    assert sep() == os.sep


def test_normalize_path_converts_and_collapses_separators() -> None:
    assert normalize_path("/a//b\\c/") == _p("/a/b/c")
    assert normalize_path("//") == _p("/")
    assert normalize_path("/") == _p("/")
    assert normalize_path("relative/name") == _p("relative/name")


def test_join_path_skips_empty_segments() -> None:
    assert join_path("/a", "", "b.txt") == _p("/a/b.txt")
    assert join_path(_p("/"), "a") == _p("/a")


def test_leaf_name_returns_last_segment() -> None:
    assert leaf_name(_p("/a/b.txt")) == "b.txt"
    assert leaf_name(_p("/a")) == "a"
    assert leaf_name(_p("/")) == ""
    assert leaf_name("plain") == "plain"


def test_parent_path_walks_up_to_root() -> None:
    assert parent_path(_p("/a/b.txt")) == _p("/a")
    assert parent_path(_p("/a")) == _p("/")
    assert parent_path("plain") is None


def test_is_root() -> None:
    assert is_root(_p("/"))
    assert not is_root(_p("/a"))
    assert not is_root("")
