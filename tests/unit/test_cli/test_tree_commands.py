"""Tests for the tree maintenance CLI commands.

This module tests the ``tree`` command group end to end:
- init creates the tables of the model's metadata
- rebuild loads a nested YAML description
- check reports violations in table and JSON form
- fix repairs corrupted bounds
- show prints the indented tree
- Argument errors (model reference, scope values, unknown rows)

Testing approach:
- Uses Click's CliRunner for command invocation
- Runs against a temporary SQLite file configured through DB_URL
"""

from __future__ import annotations

from contextlib import closing
import json
import re
import sqlite3

import pytest

from nestedtree.cli.main import cli

CATEGORY = "tree_models:Category"
MENU_ITEM = "tree_models:MenuItem"
BOUNDS = re.compile(r"\[\d+, \d+\]$")

FOREST = """\
- name: Electronics
  children:
    - name: Phones
    - name: Laptops
- name: Books
"""


@pytest.fixture
def invoke(cli_runner, cli_database):
    """Invoke the CLI against the temporary database."""

    def _invoke(*args: str):
        return cli_runner.invoke(cli, list(args), obj={})

    return _invoke


@pytest.fixture
def forest_file(tmp_path):
    path = tmp_path / "forest.yaml"
    path.write_text(FOREST, encoding="utf-8")
    return path


@pytest.fixture
def populated(invoke, forest_file):
    assert invoke("tree", "init", CATEGORY).exit_code == 0
    result = invoke("tree", "rebuild", CATEGORY, str(forest_file))
    assert result.exit_code == 0, result.output
    return forest_file


def execute_sql(tmp_path, sql: str) -> None:
    with closing(sqlite3.connect(tmp_path / "cli.db")) as conn:
        conn.execute(sql)
        conn.commit()


# =============================================================================
# init / rebuild
# =============================================================================


class TestInitAndRebuild:
    def test_init_creates_tables(self, invoke):
        result = invoke("tree", "init", CATEGORY)

        assert result.exit_code == 0
        assert "Tables for Category are ready" in result.output

    def test_rebuild_reports_changed_rows(self, invoke, forest_file):
        invoke("tree", "init", CATEGORY)

        result = invoke("tree", "rebuild", CATEGORY, str(forest_file))

        assert result.exit_code == 0
        assert "Rebuilt Category: 4 row(s) changed" in result.output

    def test_rebuild_unknown_id_fails(self, invoke, tmp_path):
        invoke("tree", "init", CATEGORY)
        data = tmp_path / "bad.yaml"
        data.write_text("- id: 999\n", encoding="utf-8")

        result = invoke("tree", "rebuild", CATEGORY, str(data))

        assert result.exit_code == 1
        assert "Category not found with id=999" in result.output

    def test_rebuild_rejects_non_list_file(self, invoke, tmp_path):
        invoke("tree", "init", CATEGORY)
        data = tmp_path / "bad.yaml"
        data.write_text("name: lonely\n", encoding="utf-8")

        result = invoke("tree", "rebuild", CATEGORY, str(data))

        assert result.exit_code == 2
        assert "expected a list of node mappings" in result.output


# =============================================================================
# check / fix
# =============================================================================


class TestCheckAndFix:
    def test_check_consistent_tree(self, invoke, populated):
        result = invoke("tree", "check", CATEGORY)

        assert result.exit_code == 0
        assert "Tree is consistent" in result.output

    def test_check_json_output(self, invoke, populated):
        result = invoke("tree", "check", CATEGORY, "--format", "json")

        assert result.exit_code == 0
        payload = json.loads(result.output)
        assert payload["model"] == "Category"
        assert payload["total"] == 0
        assert payload["missing_parent"] == 0

    def test_broken_tree_is_reported_then_fixed(self, invoke, populated, tmp_path):
        execute_sql(tmp_path, "UPDATE categories SET lft = 3 WHERE name = 'Laptops'")

        broken = invoke("tree", "check", CATEGORY)
        fixed = invoke("tree", "fix", CATEGORY)
        again = invoke("tree", "check", CATEGORY)

        assert broken.exit_code == 1
        assert "Tree is broken" in broken.output
        assert fixed.exit_code == 0
        assert "Fixed 1 row(s)" in fixed.output
        assert again.exit_code == 0

    def test_fix_healthy_tree(self, invoke, populated):
        result = invoke("tree", "fix", CATEGORY)

        assert result.exit_code == 0
        assert "Nothing to fix" in result.output

    def test_fix_unknown_root(self, invoke, populated):
        result = invoke("tree", "fix", CATEGORY, "--root", "999")

        assert result.exit_code == 1
        assert "not found" in result.output


# =============================================================================
# show
# =============================================================================


class TestShow:
    def test_show_indents_by_depth(self, invoke, populated):
        result = invoke("tree", "show", CATEGORY)

        assert result.exit_code == 0
        lines = [line for line in result.output.splitlines() if BOUNDS.search(line)]
        assert lines == [
            "Electronics [1, 6]",
            "  Phones [2, 3]",
            "  Laptops [4, 5]",
            "Books [7, 8]",
        ]

    def test_show_empty_tree(self, invoke):
        invoke("tree", "init", CATEGORY)

        result = invoke("tree", "show", CATEGORY)

        assert result.exit_code == 0
        assert "Tree is empty" in result.output


# =============================================================================
# Argument handling
# =============================================================================


class TestArguments:
    def test_scoped_model_requires_scope(self, invoke):
        result = invoke("tree", "check", MENU_ITEM)

        assert result.exit_code == 2
        assert "missing scope value(s) for menu_id" in result.output

    def test_scope_on_unscoped_model(self, invoke):
        result = invoke("tree", "check", CATEGORY, "--scope", "menu_id=1")

        assert result.exit_code == 2
        assert "is not a scope column" in result.output

    def test_scope_value_is_typed(self, invoke, tmp_path):
        invoke("tree", "init", MENU_ITEM)
        data = tmp_path / "menu.yaml"
        data.write_text("- title: Home\n  children:\n    - title: About\n", encoding="utf-8")

        rebuilt = invoke("tree", "rebuild", MENU_ITEM, str(data), "--scope", "menu_id=3")
        shown = invoke("tree", "show", MENU_ITEM, "--scope", "menu_id=3")
        other = invoke("tree", "show", MENU_ITEM, "--scope", "menu_id=4")

        assert rebuilt.exit_code == 0, rebuilt.output
        assert "  About [2, 3]" in shown.output
        assert "Tree is empty" in other.output

    def test_invalid_scope_value(self, invoke):
        result = invoke("tree", "check", MENU_ITEM, "--scope", "menu_id=abc")

        assert result.exit_code == 2
        assert "'abc' is not a valid int" in result.output

    @pytest.mark.parametrize(
        "reference",
        ["tree_models", "no_such_module:Category", "tree_models:rows"],
    )
    def test_bad_model_reference(self, invoke, reference):
        result = invoke("tree", "check", reference)

        assert result.exit_code == 2
