from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Callable, Optional

from stockdash.domain.errors import (
    AppError,
    AuthError,
    DuplicateUsernameError,
    NotAuthenticatedError,
    NotFoundError,
    ValidationError,
)
from stockdash.domain.models import Profile
from stockdash.identity.provider import SIGNED_OUT, AuthUser, Session, Subscription
from stockdash.repositories.contracts import ProfileRepository

log = logging.getLogger("stockdash.auth")

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_TAKEN = "Username already taken"


@dataclass(frozen=True)
class PasswordPolicy:
    min_length: int = 6


def _validate_password(password: str, *, min_len: int) -> None:
    if len(password) < min_len:
        raise ValidationError(f"Password must have at least {min_len} characters.")


class AuthContext:
    """Process-wide view of who is signed in.

    ``start()`` loads whatever session the provider already holds and
    subscribes to its session-change events, so sign-ins and sign-outs
    made elsewhere show up here. ``close()`` drops the subscription.
    """

    def __init__(self, provider, repo: ProfileRepository):
        self.provider = provider
        self.repo = repo
        self.user: Optional[AuthUser] = None
        self.profile: Optional[Profile] = None
        self.is_loading = True
        self._subscription: Optional[Subscription] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    def start(self) -> "AuthContext":
        try:
            self._apply(self.provider.get_session())
        finally:
            self.is_loading = False
        if self._subscription is None:
            self._subscription = self.provider.on_auth_state_change(self._on_change)
        return self

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def __enter__(self) -> "AuthContext":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _on_change(self, event: str, session: Optional[Session]) -> None:
        self._apply(None if event == SIGNED_OUT else session)
        self.is_loading = False

    def _apply(self, session: Optional[Session]) -> None:
        if session is None:
            self.user = None
            self.profile = None
            return
        self.user = session.user
        self.profile = self.repo.get_profile(session.user.id)

    def refresh_profile(self) -> Optional[Profile]:
        if self.user is not None:
            self.profile = self.repo.get_profile(self.user.id)
        return self.profile


class AuthService:
    def __init__(
        self,
        repo: ProfileRepository,
        provider,
        context: AuthContext,
        policy: PasswordPolicy | None = None,
        email_lookup: Callable[[str], Optional[str]] | None = None,
    ):
        self.repo = repo
        self.provider = provider
        self.context = context
        self.policy = policy or PasswordPolicy()
        # user id -> account email; only the identity backend can answer this
        self.email_lookup = email_lookup or repo.get_user_email

    def _ensure_username_free(self, username: str, exclude_id: Optional[str] = None) -> None:
        # Early rejection only; profiles.username UNIQUE is what actually decides.
        if self.repo.get_profile_by_username(username, exclude_id=exclude_id):
            raise DuplicateUsernameError(USERNAME_TAKEN)

    def sign_up(self, email: str, password: str, username: str, full_name: str, phone_number: str) -> Profile:
        email_clean = (email or "").strip().lower()
        user = (username or "").strip()
        if not _EMAIL_RE.match(email_clean):
            raise ValidationError("A valid email is required.")
        if not user:
            raise ValidationError("Username is required.")
        _validate_password(password or "", min_len=self.policy.min_length)

        self._ensure_username_free(user)

        account = self.provider.sign_up(
            email_clean,
            password,
            {"username": user, "full_name": full_name, "phone_number": phone_number},
        )
        # New accounts have to log in explicitly.
        try:
            profile = self.repo.create_profile(account.id, user, full_name or None, phone_number or None)
        except AppError:
            self._sign_out_after_failed_sign_up(account.id)
            raise
        self.provider.sign_out()

        log.info("user_registered user_id=%s username=%s", account.id, user)
        return profile

    def _sign_out_after_failed_sign_up(self, user_id: str) -> None:
        try:
            self.provider.sign_out()
        except AppError:
            log.exception("sign_out_failed user_id=%s after=create_profile", user_id)

    def sign_in(self, username: str, password: str) -> Session:
        user = (username or "").strip()
        if not user:
            raise ValidationError("Username is required.")

        profile = self.repo.get_profile_by_username(user)
        if not profile:
            log.info("login_failed username=%s reason=unknown_username", user)
            raise NotFoundError("Username not found")

        email = self.email_lookup(profile.id)
        if not email:
            raise NotFoundError("Could not retrieve user email")

        try:
            session = self.provider.sign_in_with_password(email, password)
        except AuthError:
            log.info("login_failed username=%s reason=bad_credentials", user)
            raise
        log.info("login_ok user_id=%s", session.user.id)
        return session

    def sign_out(self) -> None:
        self.provider.sign_out()

    def update_profile(self, **fields) -> Profile:
        if not self.context.is_authenticated:
            raise NotAuthenticatedError("Not authenticated")

        allowed = {"username", "full_name", "phone_number"}
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

        user_id = self.context.user.id
        current = self.context.profile
        if "username" in fields:
            new_username = (fields["username"] or "").strip()
            if not new_username:
                raise ValidationError("Username is required.")
            fields["username"] = new_username
            if current is None or new_username != current.username:
                self._ensure_username_free(new_username, exclude_id=user_id)

        updated = self.repo.update_profile(user_id, fields)
        if not updated:
            raise NotFoundError("Profile not found.")
        self.context.refresh_profile()
        log.info("profile_updated user_id=%s fields=%s", user_id, ",".join(sorted(fields)))
        return updated
