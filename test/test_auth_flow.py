from pathlib import Path

import pytest

from conftest import make_repo

from stockdash.domain.errors import (
    AuthError,
    DuplicateUsernameError,
    NotAuthenticatedError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from stockdash.identity.local_provider import SqliteIdentityProvider
from stockdash.identity.provider import SIGNED_IN, SIGNED_OUT
from stockdash.repositories.sqlite_repo import SqliteRepository
from stockdash.services.auth_service import AuthContext, AuthService


def _setup(tmp_path: Path, repo=None):
    repo = repo or make_repo(tmp_path)
    provider = SqliteIdentityProvider(repo.db_path, hash_rounds=1_000)
    provider.init_db()
    context = AuthContext(provider, repo).start()
    auth = AuthService(repo, provider, context)
    return repo, provider, context, auth


def _register(auth, username="maria", email="maria@example.com", password="secret123"):
    return auth.sign_up(email, password, username, "Maria Lopez", "+34 600 000 000")


def test_sign_up_creates_profile_and_leaves_user_signed_out(tmp_path: Path):
    repo, provider, context, auth = _setup(tmp_path)

    profile = _register(auth)

    assert profile.username == "maria"
    assert profile.full_name == "Maria Lopez"
    assert repo.get_user_email(profile.id) == "maria@example.com"
    assert provider.get_session() is None
    assert context.user is None
    assert context.is_loading is False


def test_sign_up_rejects_taken_username(tmp_path: Path):
    _repo, _provider, _context, auth = _setup(tmp_path)
    _register(auth)

    with pytest.raises(DuplicateUsernameError):
        _register(auth, email="other@example.com")


class BlindLookupRepo(SqliteRepository):
    """Lookup misses, as when two sign-ups race past the early check."""

    def get_profile_by_username(self, username, exclude_id=None):
        return None


def test_storage_uniqueness_still_catches_duplicate_usernames(tmp_path: Path):
    repo = BlindLookupRepo(tmp_path / "race.db")
    repo.init_db()
    _repo, provider, context, auth = _setup(tmp_path, repo=repo)
    _register(auth)

    with pytest.raises(DuplicateUsernameError):
        _register(auth, email="other@example.com")
    assert provider.get_session() is None
    assert context.user is None


class StuckSessionProvider(SqliteIdentityProvider):
    def sign_out(self):
        raise StorageError("logout endpoint unreachable")


def test_failed_sign_out_does_not_hide_the_profile_error(tmp_path: Path):
    repo = BlindLookupRepo(tmp_path / "stuck.db")
    repo.init_db()
    _repo, _provider, _context, auth = _setup(tmp_path, repo=repo)
    _register(auth)

    stuck = StuckSessionProvider(repo.db_path, hash_rounds=1_000)
    auth.provider = stuck

    with pytest.raises(DuplicateUsernameError):
        _register(auth, email="other@example.com")


@pytest.mark.parametrize(
    "email, password, username",
    [
        ("not-an-email", "secret123", "maria"),
        ("maria@example.com", "123", "maria"),
        ("maria@example.com", "secret123", "   "),
    ],
)
def test_sign_up_validates_input(tmp_path: Path, email, password, username):
    _repo, _provider, _context, auth = _setup(tmp_path)

    with pytest.raises(ValidationError):
        auth.sign_up(email, password, username, "", "")


def test_sign_in_by_username_populates_context(tmp_path: Path):
    _repo, _provider, context, auth = _setup(tmp_path)
    profile = _register(auth)

    session = auth.sign_in("maria", "secret123")

    assert session.user.id == profile.id
    assert context.is_authenticated
    assert context.user.email == "maria@example.com"
    assert context.profile.username == "maria"


def test_sign_in_unknown_username(tmp_path: Path):
    _repo, _provider, _context, auth = _setup(tmp_path)

    with pytest.raises(NotFoundError, match="Username not found"):
        auth.sign_in("nobody", "secret123")


def test_sign_in_wrong_password(tmp_path: Path):
    _repo, _provider, context, auth = _setup(tmp_path)
    _register(auth)

    with pytest.raises(AuthError, match="Invalid login credentials"):
        auth.sign_in("maria", "wrong-password")
    assert context.user is None


def test_sign_out_clears_context(tmp_path: Path):
    _repo, _provider, context, auth = _setup(tmp_path)
    _register(auth)
    auth.sign_in("maria", "secret123")

    auth.sign_out()

    assert context.user is None
    assert context.profile is None


def test_update_profile_requires_a_session(tmp_path: Path):
    _repo, _provider, _context, auth = _setup(tmp_path)

    with pytest.raises(NotAuthenticatedError, match="Not authenticated"):
        auth.update_profile(full_name="Nobody")


def test_update_profile_changes_fields_and_refreshes_context(tmp_path: Path):
    _repo, _provider, context, auth = _setup(tmp_path)
    _register(auth)
    auth.sign_in("maria", "secret123")

    updated = auth.update_profile(full_name="Maria L.", username="maria")

    assert updated.full_name == "Maria L."
    assert context.profile.full_name == "Maria L."


def test_update_profile_rejects_someone_elses_username(tmp_path: Path):
    _repo, _provider, context, auth = _setup(tmp_path)
    _register(auth)
    _register(auth, username="juan", email="juan@example.com")
    auth.sign_in("maria", "secret123")

    with pytest.raises(DuplicateUsernameError):
        auth.update_profile(username="juan")
    assert context.profile.username == "maria"


def test_username_change_allows_new_login_name(tmp_path: Path):
    _repo, _provider, _context, auth = _setup(tmp_path)
    _register(auth)
    auth.sign_in("maria", "secret123")

    auth.update_profile(username="mlopez")
    auth.sign_out()

    assert auth.sign_in("mlopez", "secret123").user.email == "maria@example.com"


def test_context_picks_up_existing_session_and_stops_after_close(tmp_path: Path):
    repo, provider, first, auth = _setup(tmp_path)
    _register(auth)
    auth.sign_in("maria", "secret123")

    with AuthContext(provider, repo) as second:
        assert second.user.email == "maria@example.com"
        assert second.profile.username == "maria"

    auth.sign_out()
    assert first.user is None
    assert second.user is not None


def test_provider_pushes_session_events(tmp_path: Path):
    _repo, provider, _context, auth = _setup(tmp_path)
    events = []
    sub = provider.on_auth_state_change(lambda event, session: events.append(event))

    _register(auth)
    auth.sign_in("maria", "secret123")
    sub.unsubscribe()
    auth.sign_out()

    assert events == [SIGNED_IN, SIGNED_OUT, SIGNED_IN]


def test_duplicate_email_is_rejected_by_the_identity_backend(tmp_path: Path):
    _repo, _provider, _context, auth = _setup(tmp_path)
    _register(auth)

    with pytest.raises(AuthError, match="already registered"):
        _register(auth, username="maria2")
