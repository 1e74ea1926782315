"""
Per-category access control.

A category is locked when it has a password of its own, or when it opted
into ``inheritPassword`` and the nearest protected ancestor reachable through
an unbroken run of inheriting ancestors is still locked. An admin session
bypasses every lock. Unlocking only ever goes Locked -> Unlocked within a
session; the UnlockSet is dropped on reload.
"""
import hmac
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from .errors import CategoryLocked
from .models import DEFAULT_CATEGORY_ID, Category, Link
from .tree import CategoryTreeNode

logger = logging.getLogger(__name__)


class UnlockSet:
    """Category ids the current visitor has unlocked this session."""

    def __init__(self, ids: Iterable[str] = ()):
        self._ids = set(ids)

    def add_all(self, ids: Iterable[str]):
        self._ids.update(ids)

    def clear(self):
        self._ids.clear()

    def __contains__(self, category_id) -> bool:
        return category_id in self._ids

    def __iter__(self):
        return iter(sorted(self._ids))

    def __len__(self) -> int:
        return len(self._ids)


@dataclass(frozen=True)
class LockSource:
    type: str = "none"  # none | direct | inherited
    source_name: Optional[str] = None
    source_id: Optional[str] = None


@dataclass
class UnlockResult:
    success: bool
    unlocked_ids: List[str] = field(default_factory=list)


def _same_secret(stored: Optional[str], candidate: str) -> bool:
    if not stored:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), candidate.encode("utf-8"))


class AccessEvaluator:
    def __init__(self, categories: List[Category], unlocked: Optional[UnlockSet] = None, is_admin: bool = False):
        self.categories = categories
        self.unlocked = unlocked if unlocked is not None else UnlockSet()
        self.is_admin = is_admin
        self._by_id: Dict[str, Category] = {c.id: c for c in categories}

    def protecting_ancestor(self, category_id: str) -> Optional[Category]:
        """
        Nearest ancestor with a password that ``category_id`` inherits from.

        The walk only starts if the category itself sets inheritPassword, and
        continues past a password-less ancestor only while that ancestor also
        inherits. A missing parent ends the walk.
        """
        cat = self._by_id.get(category_id)
        if cat is None or not cat.inherit_password:
            return None

        seen = {cat.id}
        current = cat
        while current.parent_id:
            parent = self._by_id.get(current.parent_id)
            if parent is None or parent.id in seen:
                return None
            if parent.has_password:
                return parent
            if not parent.inherit_password:
                return None
            seen.add(parent.id)
            current = parent
        return None

    def is_locked(self, category_id: str) -> bool:
        if self.is_admin:
            return False
        cat = self._by_id.get(category_id)
        if cat is None:
            return False
        if category_id in self.unlocked:
            return False
        if cat.has_password:
            return True
        protector = self.protecting_ancestor(category_id)
        if protector is None:
            return False
        return protector.id not in self.unlocked

    def lock_source(self, category_id: str) -> LockSource:
        cat = self._by_id.get(category_id)
        if cat is None:
            return LockSource()
        if cat.has_password:
            return LockSource(type="direct")
        protector = self.protecting_ancestor(category_id)
        if protector is None:
            return LockSource()
        return LockSource(type="inherited", source_name=protector.name, source_id=protector.id)

    def verify_and_unlock(self, category_id: str, candidate: str) -> UnlockResult:
        cat = self._by_id.get(category_id)
        if cat is None:
            return UnlockResult(success=False)

        unlocked_ids: List[str] = []
        if _same_secret(cat.password, candidate):
            unlocked_ids = [cat.id]
        else:
            protector = self.protecting_ancestor(category_id)
            if protector is not None and _same_secret(protector.password, candidate):
                unlocked_ids = [cat.id, protector.id]

        if not unlocked_ids:
            logger.info("Unlock of category %s rejected: incorrect password", category_id)
            return UnlockResult(success=False)

        self.unlocked.add_all(unlocked_ids)
        logger.info("Unlocked categories %s", ", ".join(unlocked_ids))
        return UnlockResult(success=True, unlocked_ids=unlocked_ids)

    def require_unlocked(self, category_id: str):
        if self.is_locked(category_id):
            raise CategoryLocked(category_id)

    def effective_category_id(self, category_id: str) -> str:
        return category_id if category_id in self._by_id else DEFAULT_CATEGORY_ID

    def link_visible(self, link: Link) -> bool:
        return not self.is_locked(self.effective_category_id(link.category_id))

    def visible_links(self, links: Iterable[Link]) -> List[Link]:
        return [l for l in links if self.link_visible(l)]

    def visible_tree(self, nodes: List[CategoryTreeNode]) -> List[CategoryTreeNode]:
        """Locked nodes are dropped together with everything below them."""
        visible = []
        for node in nodes:
            if self.is_locked(node.id):
                continue
            visible.append(node.model_copy(update={"children": self.visible_tree(node.children)}))
        return visible
