from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError as SchemaError

from .errors import AuthorizationError, CredentialExpired, NotInitialized, SyncError, ValidationError
from .models import AppData

AUTH_HEADER = "x-auth-password"


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        return body.get("detail") or body.get("error") or f"HTTP {resp.status_code}"
    return f"HTTP {resp.status_code}"


def _raise_for_status(resp: requests.Response):
    if resp.ok:
        return
    message = _error_message(resp)
    if resp.status_code == 401:
        code = resp.headers.get("x-auth-error")
        if code == "expired":
            raise CredentialExpired(message)
        if code == "needs_init":
            raise NotInitialized(message)
        raise AuthorizationError(message)
    if resp.status_code == 400:
        raise ValidationError(message)
    raise SyncError(f"{resp.request.method} {resp.url} failed: {message}")


class RemoteStore:
    """Client for the storage API in ``navhub.main``."""

    def __init__(self, base_url: str, timeout: float = 5.0, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, token: Optional[str] = None, **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        if token is not None:
            headers[AUTH_HEADER] = token
        try:
            resp = self.session.request(
                method,
                f"{self.base_url}{path}",
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise SyncError(f"{method} {path} failed: {exc}") from exc
        _raise_for_status(resp)
        return resp

    def _json(self, resp: requests.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise SyncError(f"Malformed response from {resp.url}") from exc

    def is_initialized(self) -> bool:
        return bool(self._json(self._request("GET", "/api/init")).get("initialized"))

    def initialize(self, password: str):
        self._request("POST", "/api/init", json={"password": password})

    def login(self, password: str) -> int:
        body = self._json(self._request("POST", "/api/auth", token=password))
        return int(body["issuedAt"])

    def fetch_data(self) -> AppData:
        body = self._json(self._request("GET", "/api/data"))
        try:
            return AppData.from_json(body)
        except SchemaError as exc:
            raise SyncError(f"Remote document failed validation: {exc}") from exc

    def save_data(self, token: str, data: AppData):
        self._request("POST", "/api/data", token=token, json=data.to_json_dict())

    def get_config(self, name: str) -> Dict[str, Any]:
        return self._json(self._request("GET", f"/api/config/{name}")) or {}

    def save_config(self, token: str, name: str, config: Dict[str, Any]):
        self._request("POST", f"/api/config/{name}", token=token, json=config)
