from navhub.models import Category
from navhub.tree import ancestors, build_tree, descendants, iter_tree, path_of, resolve_by_path


def _cat(id, uri=None, parent=None, order=None, **extra):
    return Category(id=id, name=id.title(), uri=uri or id, parent_id=parent, order=order, **extra)


def _sample():
    return [
        _cat("tools", order=1),
        _cat("dev", parent="tools", order=2),
        _cat("frontend", parent="dev"),
        _cat("ops", parent="tools", order=1),
        _cat("news", order=0),
    ]


def test_build_tree_nests_and_assigns_level_and_path():
    roots = build_tree(_sample())

    assert [n.id for n in roots] == ["news", "tools"]
    tools = roots[1]
    assert [c.id for c in tools.children] == ["ops", "dev"]
    dev = tools.children[1]
    frontend = dev.children[0]
    assert (tools.level, dev.level, frontend.level) == (0, 1, 2)
    assert frontend.path == "tools/dev/frontend"


def test_build_tree_handles_child_listed_before_parent():
    cats = [_cat("leaf", parent="mid"), _cat("mid", parent="top"), _cat("top")]

    roots = build_tree(cats)

    leaf = roots[0].children[0].children[0]
    assert leaf.id == "leaf"
    assert leaf.level == 2
    assert leaf.path == "top/mid/leaf"


def test_dangling_parent_becomes_root():
    roots = build_tree([_cat("a"), _cat("orphan", parent="gone")])

    assert {n.id for n in roots} == {"a", "orphan"}
    orphan = next(n for n in roots if n.id == "orphan")
    assert orphan.level == 0
    assert orphan.path == "orphan"


def test_sort_is_stable_for_equal_order():
    cats = [_cat("b", order=1), _cat("a", order=1), _cat("c")]

    assert [n.id for n in build_tree(cats)] == ["c", "b", "a"]


def test_build_tree_is_idempotent():
    cats = _sample()

    first = [n.model_dump() for n in build_tree(cats)]
    second = [n.model_dump() for n in build_tree(cats)]

    assert first == second


def test_resolve_by_path_walks_segments():
    cats = _sample()

    assert resolve_by_path(cats, "tools/dev/frontend").id == "frontend"
    assert resolve_by_path(cats, "/tools/dev/").id == "dev"


def test_resolve_by_path_misses_are_none():
    cats = _sample()

    assert resolve_by_path(cats, "") is None
    assert resolve_by_path(cats, "/") is None
    assert resolve_by_path(cats, "dev") is None  # not a root
    assert resolve_by_path(cats, "tools/nope/frontend") is None


def test_resolve_by_path_same_uri_under_different_parents():
    cats = [_cat("a"), _cat("b"), _cat("a-docs", uri="docs", parent="a"), _cat("b-docs", uri="docs", parent="b")]

    assert resolve_by_path(cats, "a/docs").id == "a-docs"
    assert resolve_by_path(cats, "b/docs").id == "b-docs"


def test_path_of_round_trips_for_every_node():
    cats = _sample() + [_cat("orphan", parent="gone"), _cat("stray", parent="orphan")]

    for node in iter_tree(build_tree(cats)):
        path = path_of(cats, node)
        assert path == "/" + node.path
        assert resolve_by_path(cats, path).id == node.id


def test_ancestors_and_descendants():
    cats = _sample()

    assert [a.id for a in ancestors(cats, "frontend")] == ["tools", "dev"]
    assert ancestors(cats, "tools") == []
    assert [d.id for d in descendants(cats, "tools")] == ["dev", "ops", "frontend"]


def test_missing_optional_fields_use_defaults():
    cat = Category.model_validate({"id": "x", "name": "X", "uri": "x", "parentId": "", "password": ""})

    assert cat.parent_id is None
    assert cat.password is None
    assert cat.inherit_password is False
    assert build_tree([cat])[0].level == 0
