import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from pydantic import ValidationError as SchemaError

from . import icons
from .access import AccessEvaluator
from .admin import AdminService
from .config import Settings, load_settings
from .errors import AuthorizationError, CategoryLocked, CredentialExpired, NotInitialized, ValidationError
from .links import add_link, displayed_links
from .models import DEFAULT_CATEGORY_ID, AppData, SearchConfig, WebsiteConfig
from .storage import AI_CONFIG_KEY, APP_DATA_KEY, SEARCH_CONFIG_KEY, WEBSITE_CONFIG_KEY, FileKVStore
from .tree import build_tree, iter_tree, resolve_by_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

CONFIG_KEYS = {
    "website": WEBSITE_CONFIG_KEY,
    "search": SEARCH_CONFIG_KEY,
    "ai": AI_CONFIG_KEY,
}

# Category names a quick-added link lands in when no category is given.
INBOX_KEYWORDS = ("inbox", "unsorted", "temp", "later")


class InitIn(BaseModel):
    password: str


class FaviconIn(BaseModel):
    domain: str = ""
    icon: str = ""


class QuickLinkIn(BaseModel):
    title: str = ""
    url: str = ""
    description: Optional[str] = None
    category_id: Optional[str] = Field(default=None, alias="categoryId")


def _auth_failure(exc: AuthorizationError) -> HTTPException:
    if isinstance(exc, CredentialExpired):
        code = "expired"
    elif isinstance(exc, NotInitialized):
        code = "needs_init"
    else:
        code = "invalid"
    return HTTPException(401, str(exc), headers={"x-auth-error": code})


def _admin(request: Request) -> AdminService:
    return request.app.state.admin


def _kv(request: Request) -> FileKVStore:
    return request.app.state.kv


def require_admin(request: Request, x_auth_password: Optional[str] = Header(None)):
    try:
        _admin(request).authorize(x_auth_password)
    except AuthorizationError as exc:
        raise _auth_failure(exc)


def _load_data(kv: FileKVStore) -> AppData:
    raw = kv.get(APP_DATA_KEY)
    if not raw:
        return AppData()
    try:
        return AppData.from_json(raw)
    except SchemaError as exc:
        logger.error("Stored app data failed validation: %s", exc)
        raise HTTPException(500, "Stored data is invalid")


def _save_data(kv: FileKVStore, data: AppData):
    kv.put(APP_DATA_KEY, json.dumps(data.to_json_dict(), ensure_ascii=False))


@router.get("/init")
def check_init(request: Request):
    return {"initialized": _admin(request).is_initialized()}


@router.post("/init")
def init_admin(payload: InitIn, request: Request):
    try:
        _admin(request).initialize(payload.password)
    except ValidationError as exc:
        raise HTTPException(400, str(exc))
    return {"success": True}


@router.post("/auth")
def verify_admin(request: Request, x_auth_password: Optional[str] = Header(None)):
    try:
        issued_at = _admin(request).login(x_auth_password)
    except AuthorizationError as exc:
        raise _auth_failure(exc)
    return {"success": True, "issuedAt": issued_at}


@router.get("/data")
def get_data(request: Request):
    return _load_data(_kv(request)).to_json_dict()


@router.post("/data", dependencies=[Depends(require_admin)])
def save_data(request: Request, payload: Dict[str, Any] = Body(...)):
    try:
        data = AppData.from_json(payload)
    except SchemaError as exc:
        raise HTTPException(400, f"Invalid document: {exc.error_count()} error(s)")
    _save_data(_kv(request), data)
    logger.info("Saved document: %d links, %d categories", len(data.links), len(data.categories))
    return {"success": True}


@router.get("/config/{name}")
def get_config(name: str, request: Request):
    if name not in CONFIG_KEYS:
        raise HTTPException(404, f"Unknown config {name!r}")
    if name == "website":
        return _admin(request).website_config().to_json_dict()
    raw = _kv(request).get(CONFIG_KEYS[name])
    if raw:
        return json.loads(raw)
    if name == "search":
        return SearchConfig().to_json_dict()
    return {}


@router.post("/config/{name}", dependencies=[Depends(require_admin)])
def save_config(name: str, request: Request, payload: Dict[str, Any] = Body(...)):
    if name not in CONFIG_KEYS:
        raise HTTPException(404, f"Unknown config {name!r}")
    schema = {"website": WebsiteConfig, "search": SearchConfig}.get(name)
    if schema is not None:
        try:
            payload = schema.model_validate(payload).to_json_dict()
        except SchemaError as exc:
            raise HTTPException(400, f"Invalid {name} config: {exc.error_count()} error(s)")
    _kv(request).put(CONFIG_KEYS[name], json.dumps(payload, ensure_ascii=False))
    return {"success": True}


@router.get("/category")
def get_category(uri: str, request: Request, x_auth_password: Optional[str] = Header(None)):
    data = _load_data(_kv(request))
    category = resolve_by_path(data.categories, uri)
    if category is None:
        raise HTTPException(404, f"No category at {uri!r}")

    is_admin = False
    if x_auth_password:
        try:
            _admin(request).authorize(x_auth_password)
            is_admin = True
        except AuthorizationError:
            pass
    evaluator = AccessEvaluator(data.categories, is_admin=is_admin)
    try:
        evaluator.require_unlocked(category.id)
        needs_auth = False
    except CategoryLocked:
        needs_auth = True
    source = evaluator.lock_source(category.id)

    node = next(n for n in iter_tree(build_tree(data.categories)) if n.id == category.id)
    return {
        "category": {
            **category.model_dump(mode="json", by_alias=True, exclude_none=True, exclude={"password"}),
            "needsAuth": needs_auth,
            "lockSource": {"type": source.type, "sourceName": source.source_name},
        },
        "links": [] if needs_auth else [
            l.to_json_dict() for l in displayed_links(data.links, evaluator, category.id)
        ],
        "children": [
            {
                "id": child.id,
                "name": child.name,
                "icon": child.icon,
                "uri": child.uri,
                "needsAuth": evaluator.is_locked(child.id),
            }
            for child in node.children
        ],
    }


@router.get("/favicon")
def get_favicon(domain: str, request: Request, fetch: bool = False):
    domain = icons.domain_of(domain)
    if not domain:
        raise HTTPException(400, "Domain parameter is required")
    kv = _kv(request)
    icon = icons.cached_icon(kv, domain)
    if icon is None and fetch:
        settings: Settings = request.app.state.settings
        return {
            "icon": icons.icon_for(kv, domain, settings.favicon_ttl_seconds, settings.request_timeout),
            "cached": False,
        }
    return {"icon": icon, "cached": icon is not None}


@router.post("/favicon")
def save_favicon(payload: FaviconIn, request: Request):
    domain = icons.domain_of(payload.domain)
    if not domain or not payload.icon:
        raise HTTPException(400, "Domain and icon are required")
    settings: Settings = request.app.state.settings
    icons.cache_icon(_kv(request), domain, payload.icon, settings.favicon_ttl_seconds)
    return {"success": True}


@router.post("/link", dependencies=[Depends(require_admin)])
def quick_add_link(payload: QuickLinkIn, request: Request):
    kv = _kv(request)
    data = _load_data(kv).normalized()

    target = next((c for c in data.categories if c.id == payload.category_id), None)
    if target is None:
        target = next(
            (c for c in data.categories if any(k in c.name.lower() for k in INBOX_KEYWORDS)),
            None,
        )
    if target is None:
        target = next(c for c in data.categories if c.id == DEFAULT_CATEGORY_ID)

    try:
        new_links, link = add_link(
            data.links,
            data.categories,
            title=payload.title,
            url=payload.url,
            category_id=target.id,
            description=payload.description,
        )
    except ValidationError as exc:
        raise HTTPException(400, str(exc))

    _save_data(kv, AppData(links=new_links, categories=data.categories))
    return {"success": True, "link": link.to_json_dict(), "categoryName": target.name}


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title="NavHub")
    app.state.settings = settings
    app.state.kv = FileKVStore(settings.data_dir)
    app.state.admin = AdminService(app.state.kv, default_expiry_days=settings.password_expiry_days)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app
