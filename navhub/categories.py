"""
Category mutators. Each takes the current lists and returns new ones; input is
validated up front so a rejected mutation never yields a partial result.
"""
import logging
import uuid
from typing import List, Optional, Tuple

from .errors import ValidationError
from .models import (
    DEFAULT_CATEGORY_ID,
    RESERVED_URIS,
    Category,
    Link,
    default_category,
    generate_uri,
    is_reserved_uri,
    now_ms,
)
from .tree import descendants, find_category

logger = logging.getLogger(__name__)

DELETE_MODES = ("all", "folder")


def is_uri_unique(categories: List[Category], uri: str, parent_id: Optional[str], exclude_id: Optional[str] = None) -> bool:
    return not any(
        c.uri == uri and c.parent_id == parent_id and c.id != exclude_id
        for c in categories
    )


def _check_uri(categories: List[Category], uri: str, parent_id: Optional[str], exclude_id: Optional[str] = None):
    if not uri:
        raise ValidationError("URI required")
    if "/" in uri:
        raise ValidationError(f'URI "{uri}" may not contain "/"')
    if is_reserved_uri(uri):
        raise ValidationError(f'URI "{uri}" is reserved ({", ".join(RESERVED_URIS)})')
    if not is_uri_unique(categories, uri, parent_id, exclude_id):
        raise ValidationError(f'URI "{uri}" is already used by a sibling category')


def _check_parent(categories: List[Category], category_id: Optional[str], parent_id: Optional[str]):
    if parent_id is None:
        return
    if find_category(categories, parent_id) is None:
        raise ValidationError(f"Unknown parent category {parent_id!r}")
    if category_id is None:
        return
    if parent_id == category_id or any(d.id == parent_id for d in descendants(categories, category_id)):
        raise ValidationError("A category cannot be moved under itself or one of its descendants")


def _get(categories: List[Category], category_id: str) -> Category:
    cat = find_category(categories, category_id)
    if cat is None:
        raise ValidationError(f"Unknown category {category_id!r}")
    return cat


def add_category(
    categories: List[Category],
    name: str,
    uri: str = "",
    parent_id: Optional[str] = None,
    icon: str = "Folder",
    password: Optional[str] = None,
    inherit_password: bool = False,
) -> Tuple[List[Category], Category]:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name required")
    uri = (uri or "").strip() or generate_uri(name)
    _check_parent(categories, None, parent_id)
    _check_uri(categories, uri, parent_id)

    siblings = [c for c in categories if c.parent_id == parent_id]
    category = Category(
        id=uuid.uuid4().hex,
        name=name,
        icon=icon,
        uri=uri,
        parent_id=parent_id,
        password=password or None,
        inherit_password=inherit_password,
        order=max((c.order or 0 for c in siblings), default=-1) + 1,
        created_at=now_ms(),
    )
    return [*categories, category], category


def update_category(categories: List[Category], category_id: str, **changes) -> List[Category]:
    """
    Edit name, icon, uri, password, inherit_password or parent_id. A changed
    parent goes through the same checks as ``move_category``.
    """
    allowed = {"name", "icon", "uri", "password", "inherit_password", "parent_id"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Cannot edit {', '.join(sorted(unknown))}")

    current = _get(categories, category_id)
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise ValidationError("Name required")
    if "password" in changes:
        changes["password"] = changes["password"] or None
    if "uri" in changes:
        changes["uri"] = (changes["uri"] or "").strip() or generate_uri(changes.get("name", current.name))

    parent_id = changes.get("parent_id", current.parent_id)
    uri = changes.get("uri", current.uri)
    if "parent_id" in changes:
        _check_parent(categories, category_id, parent_id)
    if "uri" in changes or "parent_id" in changes:
        _check_uri(categories, uri, parent_id, exclude_id=category_id)

    return [c.model_copy(update=changes) if c.id == category_id else c for c in categories]


def move_category(categories: List[Category], category_id: str, new_parent_id: Optional[str]) -> List[Category]:
    return update_category(categories, category_id, parent_id=new_parent_id)


def reorder_categories(categories: List[Category], parent_id: Optional[str], ordered_ids: List[str]) -> List[Category]:
    """Renumber ``order`` of one sibling group following ``ordered_ids``."""
    sibling_ids = {c.id for c in categories if c.parent_id == parent_id}
    if set(ordered_ids) != sibling_ids or len(ordered_ids) != len(sibling_ids):
        raise ValidationError("Reorder must list every sibling exactly once")
    position = {cid: index for index, cid in enumerate(ordered_ids)}
    return [
        c.model_copy(update={"order": position[c.id]}) if c.id in position else c
        for c in categories
    ]


def reassign_orphans(links: List[Link], categories: List[Category]) -> List[Link]:
    valid_ids = {c.id for c in categories}
    return [
        l if l.category_id in valid_ids else l.model_copy(update={"category_id": DEFAULT_CATEGORY_ID})
        for l in links
    ]


def delete_category(
    categories: List[Category],
    links: List[Link],
    category_id: str,
    mode: str = "folder",
) -> Tuple[List[Category], List[Link]]:
    """
    Remove a category.

    ``all`` removes the category, every descendant and all of their links.
    ``folder`` removes only the category: its children move up to its parent
    and its links fall into the default bucket. The default bucket itself can
    never be deleted.
    """
    if mode not in DELETE_MODES:
        raise ValidationError(f"Unknown delete mode {mode!r}")
    if category_id == DEFAULT_CATEGORY_ID:
        raise ValidationError("The default category cannot be deleted")
    target = _get(categories, category_id)

    if mode == "all":
        doomed = {category_id} | {d.id for d in descendants(categories, category_id)}
        new_categories = [c for c in categories if c.id not in doomed]
        new_links = [l for l in links if l.category_id not in doomed]
    else:
        children = [c for c in categories if c.parent_id == category_id]
        remaining = [c for c in categories if c.id != category_id]
        for child in children:
            if not is_uri_unique(remaining, child.uri, target.parent_id, exclude_id=child.id):
                raise ValidationError(
                    f'Child URI "{child.uri}" would clash with a sibling after deleting {target.name!r}'
                )
        new_categories = [
            c.model_copy(update={"parent_id": target.parent_id}) if c.parent_id == category_id else c
            for c in categories
            if c.id != category_id
        ]
        new_links = list(links)

    if not any(c.id == DEFAULT_CATEGORY_ID for c in new_categories):
        new_categories.insert(0, default_category())

    new_links = reassign_orphans(new_links, new_categories)
    logger.info("Deleted category %s (mode=%s)", category_id, mode)
    return new_categories, new_links
