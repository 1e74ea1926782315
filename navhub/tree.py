"""
Category hierarchy: building the nested tree out of the flat category list,
resolving slash-separated uri paths to categories and back, and the two
canonical walks (ancestors, descendants) every other module reuses.
"""
from typing import Dict, List, Optional

from pydantic import Field

from .models import Category


class CategoryTreeNode(Category):
    children: List["CategoryTreeNode"] = Field(default_factory=list)
    level: int = 0
    path: str = ""  # "tools/dev/frontend", no leading slash


def _sort_key(node: CategoryTreeNode) -> int:
    return node.order or 0


def build_tree(categories: List[Category]) -> List[CategoryTreeNode]:
    nodes: Dict[str, CategoryTreeNode] = {}
    for cat in categories:
        fields = {name: getattr(cat, name) for name in Category.model_fields}
        nodes[cat.id] = CategoryTreeNode(**fields, children=[], level=0, path=cat.uri)

    roots: List[CategoryTreeNode] = []
    for cat in categories:
        node = nodes[cat.id]
        parent = nodes.get(cat.parent_id) if cat.parent_id else None
        if parent is not None and parent is not node:
            parent.children.append(node)
        else:
            roots.append(node)

    def assign(siblings: List[CategoryTreeNode], parent: Optional[CategoryTreeNode]):
        # list.sort is stable, so equal orders keep their input order
        siblings.sort(key=_sort_key)
        for node in siblings:
            if parent is None:
                node.level = 0
                node.path = node.uri
            else:
                node.level = parent.level + 1
                node.path = f"{parent.path}/{node.uri}"
            assign(node.children, node)

    assign(roots, None)
    return roots


def iter_tree(nodes: List[CategoryTreeNode]):
    """Depth-first, parents before children, in display order."""
    for node in nodes:
        yield node
        yield from iter_tree(node.children)


def find_category(categories: List[Category], category_id: Optional[str]) -> Optional[Category]:
    if not category_id:
        return None
    return next((c for c in categories if c.id == category_id), None)


def resolve_by_path(categories: List[Category], path: str) -> Optional[Category]:
    parts = [p for p in (path or "").split("/") if p]
    if not parts:
        return None

    # a dangling or self parent places a category among the roots, as in build_tree
    known = {c.id for c in categories}

    def group(cat: Category) -> Optional[str]:
        if cat.parent_id in known and cat.parent_id != cat.id:
            return cat.parent_id
        return None

    current: Optional[Category] = None
    parent_id: Optional[str] = None
    for part in parts:
        current = next(
            (c for c in categories if c.uri == part and group(c) == parent_id),
            None,
        )
        if current is None:
            return None
        parent_id = current.id
    return current


def ancestors(categories: List[Category], category_id: str) -> List[Category]:
    """Ancestors of a category, root first. Stops at a dangling parentId."""
    by_id = {c.id: c for c in categories}
    chain: List[Category] = []
    seen = {category_id}
    current = by_id.get(category_id)
    while current is not None and current.parent_id:
        parent = by_id.get(current.parent_id)
        if parent is None or parent.id in seen:
            break
        seen.add(parent.id)
        chain.insert(0, parent)
        current = parent
    return chain


def descendants(categories: List[Category], category_id: str) -> List[Category]:
    """Every category below ``category_id``, breadth first."""
    found: List[Category] = []
    seen = {category_id}
    queue = [category_id]
    while queue:
        current_id = queue.pop(0)
        for child in categories:
            if child.parent_id == current_id and child.id not in seen:
                seen.add(child.id)
                found.append(child)
                queue.append(child.id)
    return found


def path_of(categories: List[Category], category: Category) -> str:
    parts = [a.uri for a in ancestors(categories, category.id)] + [category.uri]
    return "/" + "/".join(parts)
