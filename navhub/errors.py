class NavHubError(Exception):
    """Base class for every error this package raises on purpose."""


class ValidationError(NavHubError):
    """Mutation input rejected before any state was touched."""


class AuthorizationError(NavHubError):
    """Wrong admin or category password, or no credential at all."""


class CredentialExpired(AuthorizationError):
    """The admin credential was correct once but its expiry window has passed."""


class NotInitialized(AuthorizationError):
    """No admin credential has been set up on the remote store yet."""


class CategoryLocked(AuthorizationError):
    def __init__(self, category_id: str):
        super().__init__(f"category {category_id!r} is locked")
        self.category_id = category_id


class SyncError(NavHubError):
    """Remote store unreachable, non-2xx answer, or a payload that fails validation."""
