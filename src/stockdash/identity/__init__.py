from .provider import (
    SIGNED_IN,
    SIGNED_OUT,
    AuthUser,
    IdentityProvider,
    Session,
    Subscription,
)
from .local_provider import SqliteIdentityProvider
from .http_provider import HttpIdentityProvider

__all__ = [
    "SIGNED_IN",
    "SIGNED_OUT",
    "AuthUser",
    "Session",
    "Subscription",
    "IdentityProvider",
    "SqliteIdentityProvider",
    "HttpIdentityProvider",
]
