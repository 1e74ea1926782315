"""
Local-first synchronisation of the canonical ``{links, categories}`` document.

The engine owns the in-memory snapshot and is the only place it is replaced.
Every replacement is written through to the local cache at once; when an
admin credential is held the full snapshot is then pushed to the remote store
in the background. A failed push never rolls the local snapshot back: the next
push sends the whole document again.

Pushes are not cancelled when superseded. Two pushes carrying different
snapshots race and the remote keeps whichever lands last; the status shown is
the one of the last push to finish.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .access import AccessEvaluator, UnlockSet
from .admin import is_expired
from .errors import AuthorizationError, SyncError, ValidationError
from .models import AppData, Category, Link, WebsiteConfig, now_ms
from .storage import LocalCache
from .tree import CategoryTreeNode, build_tree, resolve_by_path

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    IDLE = "idle"
    OFFLINE = "offline"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


@dataclass(frozen=True)
class Credential:
    token: str
    issued_at: int  # ms since epoch


class SyncEngine:
    def __init__(
        self,
        cache: LocalCache,
        remote,
        expiry_days: int = 7,
        clock: Callable[[], int] = now_ms,
        on_auth_required: Optional[Callable[[], None]] = None,
    ):
        self.cache = cache
        self.remote = remote
        self.expiry_days = expiry_days
        self.clock = clock
        self.on_auth_required = on_auth_required

        self.data = AppData()
        self.credential: Optional[Credential] = None
        self.unlocked = UnlockSet()
        self.status = SyncStatus.IDLE
        self.needs_reauth = False

    # -- state ---------------------------------------------------------

    @property
    def links(self) -> List[Link]:
        return self.data.links

    @property
    def categories(self) -> List[Category]:
        return self.data.categories

    @property
    def is_admin(self) -> bool:
        return self.credential is not None

    def evaluator(self) -> AccessEvaluator:
        return AccessEvaluator(self.data.categories, self.unlocked, is_admin=self.is_admin)

    def tree(self) -> List[CategoryTreeNode]:
        return build_tree(self.data.categories)

    def resolve(self, path: str) -> Optional[Category]:
        return resolve_by_path(self.data.categories, path)

    def _load_local(self) -> AppData:
        cached = self.cache.load_data()
        if cached is None:
            logger.info("No local cache, starting from the seed dataset")
            return AppData.seed().normalized()
        return cached.normalized()

    def load(self) -> AppData:
        """App start: local cache (or seed data), stored credential, expiry check."""
        self.data = self._load_local()
        stored = self.cache.load_credential()
        if stored is not None:
            issued_at = stored.get("issuedAt")
            if issued_at is None:
                issued_at = self.clock()
            self.credential = Credential(token=stored["token"], issued_at=int(issued_at))
            self.check_expiry()
        self.status = SyncStatus.IDLE if self.credential else SyncStatus.OFFLINE
        return self.data

    # -- credential ----------------------------------------------------

    def discard_credential(self, needs_reauth: bool = False):
        self.credential = None
        self.cache.clear_credential()
        if needs_reauth:
            self.needs_reauth = True
            if self.on_auth_required is not None:
                self.on_auth_required()

    def check_expiry(self, now: Optional[int] = None) -> bool:
        """Drop the credential once its expiry window has passed. True if dropped."""
        if self.credential is None:
            return False
        now = self.clock() if now is None else now
        if not is_expired(self.credential.issued_at, self.expiry_days, now):
            return False
        logger.info("Admin credential older than %s days, discarding it", self.expiry_days)
        self.discard_credential(needs_reauth=True)
        return True

    # -- mutations -----------------------------------------------------

    def update_data(self, links: List[Link], categories: List[Category]) -> Optional[asyncio.Task]:
        """
        Optimistically replace the snapshot and cache it. With a credential,
        push it: as a task on the running loop, or inline when none is running.
        """
        self.data = AppData(links=list(links), categories=list(categories))
        self.cache.save_data(self.data)
        if self.credential is None:
            self.status = SyncStatus.OFFLINE
            return None

        snapshot = self.data
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self.push(snapshot))
            return None
        return loop.create_task(self.push(snapshot))

    async def push(self, snapshot: Optional[AppData] = None) -> bool:
        credential = self.credential
        if credential is None:
            return False
        snapshot = self.data if snapshot is None else snapshot

        self.status = SyncStatus.SAVING
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.remote.save_data, credential.token, snapshot)
        except AuthorizationError as exc:
            logger.warning("Remote rejected the credential: %s", exc)
            # a newer login may have replaced the credential meanwhile
            if self.credential == credential:
                self.discard_credential(needs_reauth=True)
            self.status = SyncStatus.ERROR
            return False
        except (SyncError, ValidationError) as exc:
            logger.warning("Sync failed, keeping local changes: %s", exc)
            self.status = SyncStatus.ERROR
            return False

        self.status = SyncStatus.SAVED
        return True

    # -- session -------------------------------------------------------

    async def refresh_website_config(self) -> Optional[WebsiteConfig]:
        loop = asyncio.get_running_loop()
        try:
            raw = await loop.run_in_executor(None, self.remote.get_config, "website")
            config = WebsiteConfig.model_validate(raw)
        except (SyncError, ValueError) as exc:
            logger.warning("Could not fetch website config: %s", exc)
            return None
        self.expiry_days = config.password_expiry_days
        return config

    async def login(self, password: str) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self.remote.login, password)
        except AuthorizationError as exc:
            logger.info("Admin login rejected: %s", exc)
            return False
        except SyncError as exc:
            logger.warning("Admin login failed: %s", exc)
            return False

        await self.refresh_website_config()
        self.credential = Credential(token=password, issued_at=self.clock())
        self.cache.save_credential(self.credential.token, self.credential.issued_at)
        self.needs_reauth = False
        if self.check_expiry():
            return False

        try:
            remote_data = await loop.run_in_executor(None, self.remote.fetch_data)
        except SyncError as exc:
            logger.warning("Could not fetch remote data after login, keeping local: %s", exc)
            remote_data = None

        if remote_data is not None and not remote_data.is_empty():
            self.data = remote_data.normalized()
            self.cache.save_data(self.data)
            self.status = SyncStatus.SAVED
        else:
            # nothing upstream yet (or unreachable): local copy becomes the remote one
            self.cache.save_data(self.data)
            await self.push(self.data)
        return True

    def logout(self):
        self.discard_credential()
        self.unlocked.clear()
        self.needs_reauth = False
        self.data = self._load_local()
        self.status = SyncStatus.OFFLINE
