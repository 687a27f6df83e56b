"""Tests for the nested-set consistency checker.

These tests cover:
- Healthy trees report no errors
- Each violation kind is counted independently
- Scope isolation and the broken-tree warning
"""

from __future__ import annotations

import logging

import pytest
from sqlalchemy import update

from nestedtree.core.database import Scope, TreeConsistencyChecker, TreeErrors
from tree_models import Category, MenuItem, build


async def corrupt(session, model, node, **values):
    """Overwrite stored columns behind the engine's back."""
    stmt = (
        update(model)
        .where(model.id == node.id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)


# ============================================================================
# TreeErrors
# ============================================================================


@pytest.mark.unit
class TestTreeErrors:
    def test_empty_is_not_broken(self):
        errors = TreeErrors()

        assert errors.total == 0
        assert not errors.is_broken

    def test_total_sums_every_counter(self):
        errors = TreeErrors(oddness=1, duplicates=2, wrong_parent=3, missing_parent=4)

        assert errors.total == 10
        assert errors.is_broken
        assert errors.as_dict() == {
            "oddness": 1,
            "duplicates": 2,
            "wrong_parent": 3,
            "missing_parent": 4,
        }


# ============================================================================
# Counting
# ============================================================================


@pytest.mark.asyncio
class TestCountErrors:
    async def test_healthy_tree(self, db_session):
        await build(db_session, Category, [("root", [("a", [("a1", [])]), ("b", [])])])

        errors = await Category.count_errors(db_session)

        assert errors == TreeErrors()
        assert await Category.is_broken(db_session) is False

    async def test_empty_table(self, db_session):
        assert await TreeConsistencyChecker(Category).total_errors(db_session) == 0

    async def test_overlapping_bounds(self, db_session):
        nodes = await build(db_session, Category, [("root", [("a", []), ("b", [])])])
        await corrupt(db_session, Category, nodes["b"], lft=3)

        errors = await Category.count_errors(db_session)

        assert errors.oddness == 1
        assert errors.duplicates == 1
        assert errors.wrong_parent == 0
        assert errors.missing_parent == 0

    async def test_shared_left_bound(self, db_session):
        nodes = await build(db_session, Category, [("root", [("a", []), ("b", []), ("c", [])])])
        await corrupt(db_session, Category, nodes["c"], lft=4)

        errors = await Category.count_errors(db_session)

        assert errors.duplicates == 1
        assert errors.oddness == 0
        assert await Category.is_broken(db_session) is True

    async def test_shared_right_bound(self, db_session):
        nodes = await build(db_session, Category, [("root", [("a", []), ("b", []), ("c", [])])])
        await corrupt(db_session, Category, nodes["a"], rgt=5)

        errors = await Category.count_errors(db_session)

        assert errors.duplicates == 1
        assert errors.oddness == 0
        assert await Category.is_broken(db_session) is True

    async def test_inverted_bounds(self, db_session):
        nodes = await build(db_session, Category, [("root", [])])
        await corrupt(db_session, Category, nodes["root"], lft=2, rgt=1)

        errors = await Category.count_errors(db_session)

        assert errors.oddness == 1

    async def test_child_outside_its_parent(self, db_session):
        nodes = await build(db_session, Category, [("root", [("a", []), ("b", [])])])
        await corrupt(db_session, Category, nodes["a"], parent_id=nodes["b"].id)

        errors = await Category.count_errors(db_session)

        assert errors == TreeErrors(wrong_parent=1)

    async def test_grandchild_pointing_at_grandparent(self, db_session):
        nodes = await build(db_session, Category, [("root", [("a", [("a1", [])])])])
        await corrupt(db_session, Category, nodes["a1"], parent_id=nodes["root"].id)

        errors = await Category.count_errors(db_session)

        assert errors == TreeErrors(wrong_parent=1)

    async def test_dangling_parent_pointer(self, db_session):
        nodes = await build(db_session, Category, [("root", [("a", [])])])
        await corrupt(db_session, Category, nodes["a"], parent_id=9999)

        errors = await Category.count_errors(db_session)

        assert errors == TreeErrors(missing_parent=1)

    async def test_parent_in_other_scope_is_missing(self, db_session):
        first = await build(db_session, MenuItem, [("home", [("about", [])])], menu_id=1)
        second = await build(db_session, MenuItem, [("shop", [])], menu_id=2)
        await corrupt(db_session, MenuItem, first["about"], parent_id=second["shop"].id)

        assert (await MenuItem.count_errors(db_session, menu_id=1)).missing_parent == 1
        assert await MenuItem.is_broken(db_session, menu_id=2) is False

    async def test_broken_tree_logs_warning(self, db_session, caplog):
        nodes = await build(db_session, Category, [("root", [("a", [])])])
        await corrupt(db_session, Category, nodes["a"], parent_id=9999)
        checker = TreeConsistencyChecker(Category, Scope.for_model(Category))

        with caplog.at_level(logging.WARNING, logger="nestedset.Category"):
            assert await checker.is_broken(db_session)

        assert any(r.message == "Nested set is broken" for r in caplog.records)
        record = next(r for r in caplog.records if r.message == "Nested set is broken")
        assert record.missing_parent == 1

    async def test_warning_can_be_disabled(self, db_session, caplog, monkeypatch):
        monkeypatch.setenv("NESTEDSET_WARN_ON_BROKEN", "false")
        nodes = await build(db_session, Category, [("root", [("a", [])])])
        await corrupt(db_session, Category, nodes["a"], parent_id=9999)

        with caplog.at_level(logging.WARNING, logger="nestedset.Category"):
            assert await Category.is_broken(db_session)

        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]
