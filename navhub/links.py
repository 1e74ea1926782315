import uuid
from typing import Iterable, List, Optional, Tuple

from .access import AccessEvaluator
from .errors import ValidationError
from .models import DEFAULT_CATEGORY_ID, Category, Link, now_ms


ALL = "all"


def normalize_url(url: str) -> str:
    url = url.strip()
    if url and not url.startswith(("http://", "https://")):
        url = "https://" + url
    return url


def _order_key(link: Link) -> int:
    return link.order if link.order is not None else link.created_at


def _pinned_key(link: Link):
    # links with a pinnedOrder come before those without one
    if link.pinned_order is not None:
        return (0, link.pinned_order, link.created_at)
    return (1, 0, link.created_at)


def sort_links(links: Iterable[Link]) -> List[Link]:
    """Pinned links first by pinnedOrder, then the rest by order (or createdAt)."""
    links = list(links)
    pinned = sorted((l for l in links if l.pinned), key=_pinned_key)
    rest = sorted((l for l in links if not l.pinned), key=_order_key)
    return pinned + rest


def matches_query(link: Link, query: str) -> bool:
    q = query.strip().lower()
    if not q:
        return True
    return (
        q in link.title.lower()
        or q in link.url.lower()
        or (link.description is not None and q in link.description.lower())
    )


def pinned_links(links: Iterable[Link], evaluator: AccessEvaluator) -> List[Link]:
    return sorted(
        (l for l in links if l.pinned and evaluator.link_visible(l)),
        key=_pinned_key,
    )


def displayed_links(
    links: Iterable[Link],
    evaluator: AccessEvaluator,
    category_id: str = ALL,
    query: str = "",
) -> List[Link]:
    """
    Links the current visitor may see, optionally narrowed to one category and
    a case-insensitive search over title, url and description. Links of locked
    categories are always excluded.
    """
    result = []
    for link in evaluator.visible_links(links):
        if category_id != ALL and evaluator.effective_category_id(link.category_id) != category_id:
            continue
        if not matches_query(link, query):
            continue
        result.append(link)
    return sort_links(result)


def _find(links: List[Link], link_id: str) -> Link:
    link = next((l for l in links if l.id == link_id), None)
    if link is None:
        raise ValidationError(f"Unknown link {link_id!r}")
    return link


def _require_category(categories: List[Category], category_id: str):
    if not any(c.id == category_id for c in categories):
        raise ValidationError(f"Unknown category {category_id!r}")


def _next_pinned_order(links: List[Link]) -> int:
    orders = [l.pinned_order for l in links if l.pinned and l.pinned_order is not None]
    return max(orders) + 1 if orders else 0


def add_link(
    links: List[Link],
    categories: List[Category],
    title: str,
    url: str,
    category_id: str = DEFAULT_CATEGORY_ID,
    description: Optional[str] = None,
    icon: Optional[str] = None,
    pinned: bool = False,
) -> Tuple[List[Link], Link]:
    title = (title or "").strip()
    url = normalize_url(url or "")
    if not title:
        raise ValidationError("Title required")
    if not url:
        raise ValidationError("URL required")
    if not any(c.id == category_id for c in categories):
        category_id = DEFAULT_CATEGORY_ID

    siblings = [l for l in links if not l.pinned and l.category_id == category_id]
    max_order = max((l.order or 0 for l in siblings), default=-1)

    link = Link(
        id=uuid.uuid4().hex,
        title=title,
        url=url,
        description=description,
        icon=icon,
        category_id=category_id,
        created_at=now_ms(),
        pinned=pinned,
        order=max_order + 1,
        pinned_order=_next_pinned_order(links) if pinned else None,
    )
    return sort_links([*links, link]), link


def edit_link(links: List[Link], categories: List[Category], link_id: str, **changes) -> List[Link]:
    allowed = {"title", "url", "description", "icon", "category_id"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Cannot edit {', '.join(sorted(unknown))}")
    if "title" in changes:
        changes["title"] = (changes["title"] or "").strip()
        if not changes["title"]:
            raise ValidationError("Title required")
    if "url" in changes:
        changes["url"] = normalize_url(changes["url"] or "")
        if not changes["url"]:
            raise ValidationError("URL required")
    if "category_id" in changes:
        _require_category(categories, changes["category_id"])

    target = _find(links, link_id)
    return [l.model_copy(update=changes) if l is target else l for l in links]


def delete_links(links: List[Link], link_ids: Iterable[str]) -> List[Link]:
    ids = set(link_ids)
    return [l for l in links if l.id not in ids]


def delete_link(links: List[Link], link_id: str) -> List[Link]:
    _find(links, link_id)
    return delete_links(links, [link_id])


def move_links(links: List[Link], categories: List[Category], link_ids: Iterable[str], target_category_id: str) -> List[Link]:
    _require_category(categories, target_category_id)
    ids = set(link_ids)
    return [l.model_copy(update={"category_id": target_category_id}) if l.id in ids else l for l in links]


def toggle_pin(links: List[Link], link_id: str) -> List[Link]:
    target = _find(links, link_id)
    if target.pinned:
        update = {"pinned": False, "pinned_order": None}
    else:
        update = {"pinned": True, "pinned_order": _next_pinned_order(links)}
    return sort_links(l.model_copy(update=update) if l is target else l for l in links)


def _array_move(items: list, from_index: int, to_index: int) -> list:
    items = list(items)
    items.insert(to_index, items.pop(from_index))
    return items


def reorder_links(links: List[Link], category_id: str, active_id: str, over_id: str) -> List[Link]:
    """Drag ``active_id`` onto ``over_id`` and renumber ``order`` within the category."""
    if active_id == over_id:
        return list(links)
    group = sorted(
        (l for l in links if category_id == ALL or l.category_id == category_id),
        key=_order_key,
    )
    ids = [l.id for l in group]
    if active_id not in ids or over_id not in ids:
        raise ValidationError("Both links must belong to the category being reordered")

    moved = _array_move(ids, ids.index(active_id), ids.index(over_id))
    new_order = {link_id: index for index, link_id in enumerate(moved)}
    return sort_links(
        l.model_copy(update={"order": new_order[l.id]}) if l.id in new_order else l
        for l in links
    )


def reorder_pinned(links: List[Link], active_id: str, over_id: str) -> List[Link]:
    if active_id == over_id:
        return list(links)
    ids = [l.id for l in sorted((l for l in links if l.pinned), key=_pinned_key)]
    if active_id not in ids or over_id not in ids:
        raise ValidationError("Both links must be pinned")

    moved = _array_move(ids, ids.index(active_id), ids.index(over_id))
    new_order = {link_id: index for index, link_id in enumerate(moved)}
    return sort_links(
        l.model_copy(update={"pinned_order": new_order[l.id]}) if l.id in new_order else l
        for l in links
    )
