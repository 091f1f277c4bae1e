from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from stockdash.config import IdentitySettings, get_identity_settings
from stockdash.identity.http_provider import HttpIdentityProvider
from stockdash.identity.local_provider import SqliteIdentityProvider
from stockdash.repositories.sqlite_repo import SqliteRepository
from stockdash.services.auth_service import AuthContext, AuthService
from stockdash.services.inventory_service import InventoryService
from stockdash.services.reporting_service import ReportingService
from stockdash.services.sales_service import SalesService


@dataclass(frozen=True)
class AppContainer:
    repo: SqliteRepository
    identity: object
    session: AuthContext
    inventory: InventoryService
    sales: SalesService
    reporting: ReportingService
    auth: AuthService

    def close(self) -> None:
        self.session.close()


def build_identity_provider(db_path: Path | str, settings: IdentitySettings):
    if settings.remote:
        return HttpIdentityProvider(settings.auth_url, settings.api_key or "")
    provider = SqliteIdentityProvider(db_path)
    provider.init_db()
    return provider


def build_container(db_path: Path | str, settings: IdentitySettings | None = None) -> AppContainer:
    repo = SqliteRepository(db_path)
    repo.init_db()

    identity = build_identity_provider(db_path, settings or get_identity_settings())
    session = AuthContext(identity, repo).start()

    return AppContainer(
        repo=repo,
        identity=identity,
        session=session,
        inventory=InventoryService(repo),
        sales=SalesService(repo),
        reporting=ReportingService(repo),
        auth=AuthService(
            repo,
            identity,
            session,
            email_lookup=identity.get_user_email if isinstance(identity, HttpIdentityProvider) else None,
        ),
    )
