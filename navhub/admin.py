"""
Server-side half of the admin credential: one-time initialisation, password
check against the stored SHA-256 digest, and expiry bookkeeping through
``last_auth_time``.

Logging in with the correct password always succeeds and restarts the expiry
window. Every other privileged call checks the window and reports an expired
credential separately from a wrong one.
"""
import hashlib
import hmac
import logging
from typing import Optional

from pydantic import ValidationError as SchemaError

from .errors import AuthorizationError, CredentialExpired, NotInitialized, ValidationError
from .models import AdminConfig, WebsiteConfig, now_ms
from .storage import ADMIN_CONFIG_KEY, LAST_AUTH_TIME_KEY, WEBSITE_CONFIG_KEY

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
DAY_MS = 24 * 60 * 60 * 1000


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def verify_password(password: str, digest: str) -> bool:
    return hmac.compare_digest(hash_password(password), digest)


def is_expired(issued_at: Optional[int], expiry_days: int, now: Optional[int] = None) -> bool:
    """0 days means the credential never expires."""
    if issued_at is None or expiry_days <= 0:
        return False
    now = now_ms() if now is None else now
    return now - issued_at > expiry_days * DAY_MS


class AdminService:
    def __init__(self, kv, default_expiry_days: int = 7):
        self.kv = kv
        self.default_expiry_days = default_expiry_days

    def admin_config(self) -> Optional[AdminConfig]:
        raw = self.kv.get(ADMIN_CONFIG_KEY)
        if not raw:
            return None
        try:
            return AdminConfig.model_validate_json(raw)
        except SchemaError as exc:
            logger.warning("Stored admin config is invalid: %s", exc)
            return None

    def website_config(self) -> WebsiteConfig:
        raw = self.kv.get(WEBSITE_CONFIG_KEY)
        if raw:
            try:
                return WebsiteConfig.model_validate_json(raw)
            except SchemaError as exc:
                logger.warning("Stored website config is invalid, using defaults: %s", exc)
        return WebsiteConfig(password_expiry_days=self.default_expiry_days)

    def is_initialized(self) -> bool:
        config = self.admin_config()
        return bool(config and config.initialized)

    def initialize(self, password: str):
        if self.is_initialized():
            raise ValidationError("Admin already initialized")
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

        config = AdminConfig(password=hash_password(password), initialized=True)
        self.kv.put(ADMIN_CONFIG_KEY, config.model_dump_json(by_alias=True))
        self.kv.put(LAST_AUTH_TIME_KEY, str(config.created_at))
        logger.info("Admin credential initialized")

    def _check_password(self, password: Optional[str]) -> AdminConfig:
        config = self.admin_config()
        if config is None or not config.initialized:
            raise NotInitialized("Admin not initialized")
        if not password:
            raise AuthorizationError("Password required")
        if not verify_password(password, config.password):
            raise AuthorizationError("Incorrect password")
        return config

    def last_auth_time(self) -> Optional[int]:
        raw = self.kv.get(LAST_AUTH_TIME_KEY)
        try:
            return int(raw) if raw else None
        except ValueError:
            return None

    def login(self, password: Optional[str], now: Optional[int] = None) -> int:
        """Check the password and start a new expiry window. Returns the issue time."""
        self._check_password(password)
        issued_at = now_ms() if now is None else now
        self.kv.put(LAST_AUTH_TIME_KEY, str(issued_at))
        logger.info("Admin login accepted")
        return issued_at

    def authorize(self, password: Optional[str], now: Optional[int] = None):
        """Gate for privileged writes."""
        self._check_password(password)
        expiry_days = self.website_config().password_expiry_days
        if is_expired(self.last_auth_time(), expiry_days, now):
            logger.info("Rejected privileged call: credential older than %s days", expiry_days)
            raise CredentialExpired("Credential expired, please log in again")
