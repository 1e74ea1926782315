import pytest

from navhub.admin import DAY_MS, AdminService, hash_password, is_expired
from navhub.errors import AuthorizationError, CredentialExpired, NotInitialized, ValidationError
from navhub.models import WebsiteConfig
from navhub.storage import ADMIN_CONFIG_KEY, LAST_AUTH_TIME_KEY, WEBSITE_CONFIG_KEY, FileKVStore


@pytest.fixture
def service(tmp_path):
    return AdminService(FileKVStore(tmp_path))


def test_hash_is_sha256_hex():
    assert hash_password("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"


def test_initialize_once(service):
    assert service.is_initialized() is False

    service.initialize("hunter22")

    assert service.is_initialized() is True
    assert "hunter22" not in service.kv.get(ADMIN_CONFIG_KEY)
    with pytest.raises(ValidationError):
        service.initialize("another-password")


def test_initialize_rejects_short_password(service):
    with pytest.raises(ValidationError):
        service.initialize("12345")
    assert service.is_initialized() is False


def test_login_distinguishes_failures(service):
    with pytest.raises(NotInitialized):
        service.login("whatever")

    service.initialize("hunter22")

    with pytest.raises(AuthorizationError) as info:
        service.login("wrong")
    assert not isinstance(info.value, CredentialExpired)
    with pytest.raises(AuthorizationError):
        service.login(None)
    assert service.login("hunter22", now=42) == 42
    assert service.kv.get(LAST_AUTH_TIME_KEY) == "42"


def test_authorize_reports_expiry_separately(service):
    service.initialize("hunter22")
    now = 100 * DAY_MS
    service.kv.put(LAST_AUTH_TIME_KEY, str(now - 8 * DAY_MS))

    with pytest.raises(CredentialExpired):
        service.authorize("hunter22", now=now)

    service.login("hunter22", now=now)
    service.authorize("hunter22", now=now + DAY_MS)


def test_zero_expiry_days_never_expires(service):
    service.initialize("hunter22")
    service.kv.put(WEBSITE_CONFIG_KEY, WebsiteConfig(password_expiry_days=0).model_dump_json(by_alias=True))
    service.kv.put(LAST_AUTH_TIME_KEY, "0")

    service.authorize("hunter22", now=1000 * DAY_MS)


def test_is_expired():
    assert is_expired(0, 7, now=8 * DAY_MS) is True
    assert is_expired(0, 7, now=7 * DAY_MS) is False
    assert is_expired(0, 0, now=800 * DAY_MS) is False
    assert is_expired(None, 7, now=800 * DAY_MS) is False
