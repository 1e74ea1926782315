from typing import Optional
from urllib.parse import urlparse

import requests

from .storage import FAVICON_KEY_PREFIX

FAVICON_SERVICE = "https://www.faviconextractor.com/favicon/{domain}?larger=true"
DEFAULT_TTL_SECONDS = 30 * 24 * 60 * 60


def domain_of(url: str) -> Optional[str]:
    parsed = urlparse(url.strip() if "://" in url else "https://" + url.strip())
    host = (parsed.hostname or "").lower()
    return host or None


def fetch_favicon(domain: str, timeout: float = 5.0) -> Optional[str]:
    """Best-effort: the site's own /favicon.ico if it answers, else the lookup service."""
    try:
        resp = requests.get(f"https://{domain}/favicon.ico", timeout=timeout)
        if resp.status_code == 200 and resp.content:
            return resp.url
    except requests.RequestException:
        pass
    return FAVICON_SERVICE.format(domain=domain)


def cached_icon(kv, domain: str) -> Optional[str]:
    return kv.get(FAVICON_KEY_PREFIX + domain)


def cache_icon(kv, domain: str, icon: str, ttl_seconds: int = DEFAULT_TTL_SECONDS):
    kv.put(FAVICON_KEY_PREFIX + domain, icon, ttl_seconds=ttl_seconds)


def icon_for(kv, domain: str, ttl_seconds: int = DEFAULT_TTL_SECONDS, timeout: float = 5.0) -> Optional[str]:
    icon = cached_icon(kv, domain)
    if icon:
        return icon
    icon = fetch_favicon(domain, timeout=timeout)
    if icon:
        cache_icon(kv, domain, icon, ttl_seconds)
    return icon
