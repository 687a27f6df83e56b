"""Tests for read queries over nested-set trees.

These tests cover:
- Descendants, ancestors, children and siblings
- Pre-order neighbours, leaves and roots
- Depth annotation and soft-delete filtering
- Node predicates (measures, ancestry, siblings)
"""

from __future__ import annotations

import pytest
from sqlalchemy import inspect

from nestedtree.core.database import Scope, TreeQueries
from nestedtree.core.database.nestedset import QueryContext
from tree_models import Category, MenuItem, Page, build

SHAPE = [("root", [("a", [("a1", []), ("a2", [])]), ("b", []), ("c", [])])]


def names(nodes):
    return [n.name for n in nodes]


@pytest.fixture
async def tree(db_session):
    return await build(db_session, Category, SHAPE)


@pytest.fixture
def queries():
    return TreeQueries(Category)


# ============================================================================
# Subtree and path
# ============================================================================


@pytest.mark.asyncio
class TestSubtree:
    async def test_descendants_in_preorder(self, db_session, tree, queries):
        result = await queries.descendants_of(db_session, tree["root"])

        assert names(result) == ["a", "a1", "a2", "b", "c"]

    async def test_descendants_and_self(self, db_session, tree):
        result = await tree["a"].get_descendants(db_session, and_self=True)

        assert names(result) == ["a", "a1", "a2"]

    async def test_ancestors_outermost_first(self, db_session, tree):
        assert names(await tree["a2"].get_ancestors(db_session)) == ["root", "a"]
        assert names(await tree["a2"].get_ancestors(db_session, and_self=True)) == [
            "root",
            "a",
            "a2",
        ]

    async def test_children_are_direct_only(self, db_session, tree):
        assert names(await tree["root"].get_children(db_session)) == ["a", "b", "c"]
        assert await tree["b"].get_children(db_session) == []


# ============================================================================
# Siblings and neighbours
# ============================================================================


@pytest.mark.asyncio
class TestSiblings:
    async def test_siblings(self, db_session, tree):
        assert names(await tree["b"].get_siblings(db_session)) == ["a", "c"]
        assert names(await tree["b"].get_siblings(db_session, and_self=True)) == ["a", "b", "c"]

    async def test_next_and_previous_siblings(self, db_session, tree, queries):
        assert names(await queries.next_siblings(db_session, tree["a"])) == ["b", "c"]
        assert names(await queries.prev_siblings(db_session, tree["c"])) == ["a", "b"]

    async def test_immediate_sibling(self, db_session, tree):
        assert (await tree["a"].get_next_sibling(db_session)).name == "b"
        assert (await tree["c"].get_prev_sibling(db_session)).name == "b"
        assert await tree["c"].get_next_sibling(db_session) is None

    async def test_sibling_at_offset(self, db_session, tree, queries):
        node = await queries.sibling_at(db_session, tree["a"], 2, forward=True)

        assert node.name == "c"

    async def test_preorder_neighbours_cross_levels(self, db_session, tree, queries):
        assert (await queries.next_node(db_session, tree["a2"])).name == "b"
        assert (await queries.prev_node(db_session, tree["b"])).name == "a2"
        assert await queries.prev_node(db_session, tree["root"]) is None

    async def test_root_siblings_are_other_roots(self, db_session, tree):
        other = Category(name="other")
        await other.save_as_root(db_session)

        assert names(await tree["root"].get_siblings(db_session)) == ["other"]
        assert names(await Category.get_roots(db_session)) == ["root", "other"]


# ============================================================================
# Node predicates
# ============================================================================


@pytest.mark.asyncio
class TestNodePredicates:
    async def test_measures(self, tree):
        assert tree["root"].descendant_count == 5
        assert tree["root"].node_height == 12
        assert tree["a"].bounds == (2, 7)
        assert not tree["a"].is_leaf

    async def test_relationships(self, tree):
        assert tree["a1"].is_self_or_descendant_of(tree["a1"])
        assert tree["a1"].is_self_or_descendant_of(tree["root"])
        assert not tree["b"].is_self_or_descendant_of(tree["a"])
        assert tree["a1"].is_sibling_of(tree["a2"])
        assert not tree["a1"].is_sibling_of(tree["a1"])
        assert not tree["a1"].is_sibling_of(tree["b"])

    async def test_other_scope_is_unrelated(self, db_session):
        first = await build(db_session, MenuItem, [("root", [("x", [])])], menu_id=1)
        second = await build(db_session, MenuItem, [("root", [("x", [])])], menu_id=2)

        assert not first["x"].is_descendant_of(second["root"])
        assert not first["root"].is_sibling_of(second["root"])


# ============================================================================
# Whole tree
# ============================================================================


@pytest.mark.asyncio
class TestWholeTree:
    async def test_leaves(self, db_session, tree, queries):
        assert names(await queries.leaves(db_session)) == ["a1", "a2", "b", "c"]
        assert names(await queries.leaves(db_session, tree["a"])) == ["a1", "a2"]

    async def test_tree_with_depths(self, db_session, tree, queries):
        result = await queries.tree(db_session)

        assert [(n.name, depth) for n, depth in result] == [
            ("root", 0),
            ("a", 1),
            ("a1", 2),
            ("a2", 2),
            ("b", 1),
            ("c", 1),
        ]

    async def test_subtree_depth_is_absolute(self, db_session, tree, queries):
        result = await queries.tree(db_session, tree["a"])

        assert [(n.name, depth) for n, depth in result] == [("a", 1), ("a1", 2), ("a2", 2)]

    async def test_scoped_queries_ignore_other_trees(self, db_session):
        await build(db_session, MenuItem, [("home", [("about", [])])], menu_id=1)
        await build(db_session, MenuItem, [("shop", [("cart", [])])], menu_id=2)
        queries = TreeQueries(MenuItem, Scope.for_model(MenuItem, menu_id=2))

        result = await queries.tree(db_session)

        assert [(n.title, depth) for n, depth in result] == [("shop", 0), ("cart", 1)]
        assert [r.title for r in await MenuItem.get_roots(db_session, menu_id=1)] == ["home"]


@pytest.mark.unit
class TestQueryContext:
    def test_aliases_are_numbered_per_context(self):
        ctx = QueryContext()

        first, second = ctx.alias(Category), ctx.alias(Category)

        assert inspect(first).name == "_ns1"
        assert inspect(second).name == "_ns2"
        assert inspect(QueryContext().alias(Category)).name == "_ns1"


# ============================================================================
# Soft delete filtering
# ============================================================================


@pytest.mark.asyncio
class TestSoftDeleteFiltering:
    async def test_deleted_rows_hidden_unless_requested(self, db_session):
        nodes = await build(db_session, Page, [("root", [("a", []), ("b", [])])])
        await nodes["a"].delete_node(db_session)
        queries = TreeQueries(Page)

        visible = await queries.descendants_of(db_session, nodes["root"])
        everything = await queries.descendants_of(db_session, nodes["root"], include_deleted=True)

        assert [p.title for p in visible] == ["b"]
        assert [p.title for p in everything] == ["a", "b"]

    async def test_tree_marks_deleted_when_included(self, db_session):
        nodes = await build(db_session, Page, [("root", [("a", [])])])
        await nodes["a"].delete_node(db_session)

        result = await TreeQueries(Page).tree(db_session, include_deleted=True)

        assert [(p.title, p.is_deleted) for p, _ in result] == [("root", False), ("a", True)]
