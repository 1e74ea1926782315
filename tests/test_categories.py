import pytest

from navhub.access import AccessEvaluator
from navhub.categories import (
    add_category,
    delete_category,
    move_category,
    reorder_categories,
    update_category,
)
from navhub.errors import ValidationError
from navhub.links import displayed_links
from navhub.models import DEFAULT_CATEGORY_ID, Category, Link, default_category, generate_uri


def _base():
    return [
        default_category(),
        Category(id="x", name="X", uri="x"),
        Category(id="x1", name="X1", uri="child", parent_id="x"),
        Category(id="x2", name="X2", uri="deep", parent_id="x1"),
        Category(id="y", name="Y", uri="y"),
    ]


def _link(id, category_id):
    return Link(id=id, title=id, url="https://example.com", category_id=category_id, created_at=1)


def test_generate_uri():
    assert generate_uri("  Dev Tools!! ") == "dev-tools"
    assert generate_uri("前端 Frontend") == "frontend"


def test_add_category_generates_uri_and_order():
    cats, cat = add_category(_base(), "Reading List", parent_id="y")

    assert cat.uri == "reading-list"
    assert cat.parent_id == "y"
    assert cat.order == 0
    assert cats[-1] is cat


def test_add_category_rejects_reserved_and_duplicate_uri():
    with pytest.raises(ValidationError):
        add_category(_base(), "Admin")
    with pytest.raises(ValidationError):
        add_category(_base(), "Another", uri="x")
    with pytest.raises(ValidationError):
        add_category(_base(), "")
    with pytest.raises(ValidationError):
        add_category(_base(), "Z", parent_id="nope")


def test_uri_with_slash_is_rejected():
    with pytest.raises(ValidationError):
        add_category(_base(), "Docs", uri="a/b")
    with pytest.raises(ValidationError):
        update_category(_base(), "y", uri="/y")


def test_same_uri_allowed_under_different_parent():
    _, cat = add_category(_base(), "Child", uri="child", parent_id="y")

    assert cat.uri == "child"


def test_move_under_own_descendant_is_rejected():
    with pytest.raises(ValidationError):
        move_category(_base(), "x", "x2")
    with pytest.raises(ValidationError):
        move_category(_base(), "x", "x")

    moved = move_category(_base(), "x2", None)
    assert next(c for c in moved if c.id == "x2").parent_id is None


def test_update_category_checks_sibling_uri():
    with pytest.raises(ValidationError):
        update_category(_base(), "y", uri="x")

    updated = update_category(_base(), "y", name="Why", password="secret", inherit_password=True)
    y = next(c for c in updated if c.id == "y")
    assert (y.name, y.password, y.inherit_password) == ("Why", "secret", True)

    cleared = update_category(updated, "y", password="")
    assert next(c for c in cleared if c.id == "y").password is None


def test_reorder_categories():
    reordered = reorder_categories(_base(), None, ["y", "x", DEFAULT_CATEGORY_ID])

    orders = {c.id: c.order for c in reordered if c.parent_id is None}
    assert orders == {"y": 0, "x": 1, DEFAULT_CATEGORY_ID: 2}
    with pytest.raises(ValidationError):
        reorder_categories(_base(), None, ["y", "x"])


def test_default_bucket_cannot_be_deleted():
    with pytest.raises(ValidationError):
        delete_category(_base(), [], DEFAULT_CATEGORY_ID)


def test_delete_reassigns_links_to_default_bucket():
    links = [_link("L", "y"), _link("M", "x")]

    cats, new_links = delete_category(_base(), links, "y")

    assert all(c.id != "y" for c in cats)
    moved = next(l for l in new_links if l.id == "L")
    assert moved.category_id == DEFAULT_CATEGORY_ID
    shown = displayed_links(new_links, AccessEvaluator(cats), category_id=DEFAULT_CATEGORY_ID)
    assert [l.id for l in shown] == ["L"]


def test_delete_folder_moves_children_up():
    cats, _ = delete_category(_base(), [], "x1", mode="folder")

    assert next(c for c in cats if c.id == "x2").parent_id == "x"


def test_delete_folder_rejects_uri_clash():
    cats = _base() + [Category(id="x-deep", name="Deep", uri="deep", parent_id="x")]

    with pytest.raises(ValidationError):
        delete_category(cats, [], "x1", mode="folder")


def test_delete_all_removes_subtree_and_links():
    links = [_link("a", "x"), _link("b", "x2"), _link("c", "y")]

    cats, new_links = delete_category(_base(), links, "x", mode="all")

    assert {c.id for c in cats} == {DEFAULT_CATEGORY_ID, "y"}
    assert [l.id for l in new_links] == ["c"]


def test_delete_restores_missing_default_bucket():
    cats = [Category(id="only", name="Only", uri="only")]

    new_cats, new_links = delete_category(cats, [_link("a", "only")], "only")

    assert [c.id for c in new_cats] == [DEFAULT_CATEGORY_ID]
    assert new_links[0].category_id == DEFAULT_CATEGORY_ID
