"""Tests for per-project table naming and creation."""

from __future__ import annotations

import pytest

from codeagent.db.models import Project, chunk_id, owning_project
from codeagent.db.vectors import (
    chunk_table_name,
    ensure_project_tables,
    get_dimensions,
    project_slug,
    tables_exist,
    vec_table_name,
)


# ------------------------------------------------------------------
# project_slug
# ------------------------------------------------------------------


@pytest.mark.parametrize(
    "root,expected",
    [
        ("/home/me/my app", "my_app"),
        ("/work/api.v2", "api_v2"),
        ("/work/front-end", "front-end"),
        ("/work/snake_case", "snake_case"),
        ("/work/naïve", "na_ve"),
    ],
)
def test_project_slug(root, expected):
    assert project_slug(root) == expected


def test_project_slug_is_stable():
    assert project_slug("/a/b/c d") == project_slug("/a/b/c d")


def test_table_names():
    assert chunk_table_name("proj") == "chunks_proj"
    assert vec_table_name("proj") == "vec_chunks_proj"


def test_chunk_id_uses_file_and_ordinal():
    assert chunk_id("/w/a.py", 0) == "/w/a.py-0"
    assert chunk_id("/w/a.py", 12) == "/w/a.py-12"


# ------------------------------------------------------------------
# owning_project
# ------------------------------------------------------------------


def test_owning_project_longest_prefix(tmp_path):
    outer = Project.from_root(tmp_path / "mono")
    inner = Project.from_root(tmp_path / "mono" / "packages" / "web")

    assert owning_project([outer, inner], tmp_path / "mono" / "packages" / "web" / "a.ts") == inner
    assert owning_project([outer, inner], tmp_path / "mono" / "tools" / "b.py") == outer
    assert owning_project([outer, inner], tmp_path / "elsewhere" / "c.py") is None


def test_owning_project_does_not_match_sibling_prefix(tmp_path):
    proj = Project.from_root(tmp_path / "app")
    assert owning_project([proj], tmp_path / "app2" / "x.py") is None


# ------------------------------------------------------------------
# ensure_project_tables
# ------------------------------------------------------------------


def test_ensure_project_tables_creates_pair(tmp_db):
    chunks, vec = ensure_project_tables(tmp_db, "proj", "/w/proj", 4)

    assert (chunks, vec) == ("chunks_proj", "vec_chunks_proj")
    assert tables_exist(tmp_db, "proj")
    assert get_dimensions(tmp_db, "proj") == 4


def test_ensure_project_tables_keeps_first_dimension(tmp_db):
    ensure_project_tables(tmp_db, "proj", "/w/proj", 4)
    ensure_project_tables(tmp_db, "proj", "/w/proj", 8)
    assert get_dimensions(tmp_db, "proj") == 4


def test_ensure_project_tables_hyphenated_slug(tmp_db):
    ensure_project_tables(tmp_db, "front-end", "/w/front-end", 3)
    assert tables_exist(tmp_db, "front-end")


def test_get_dimensions_unknown_project(tmp_db):
    assert get_dimensions(tmp_db, "nope") is None
    assert not tables_exist(tmp_db, "nope")


@pytest.mark.parametrize("slug", ["bad slug", "x;DROP", ""])
def test_ensure_project_tables_rejects_unsanitized_slug(tmp_db, slug):
    with pytest.raises(ValueError):
        ensure_project_tables(tmp_db, slug, "/w", 4)


def test_ensure_project_tables_rejects_zero_dimensions(tmp_db):
    with pytest.raises(ValueError):
        ensure_project_tables(tmp_db, "proj", "/w/proj", 0)
