"""
Shared fixtures: temporary blob storage, SQLite catalog, frozen clock,
actors and an API client.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from medvault.access import Actor, Capability
from medvault.config import Settings
from medvault.main import create_app
from medvault.services.database_service import DatabaseService
from medvault.services.document_service import DocumentService
from medvault.services.logging_service import AuditLoggingService
from medvault.services.storage_service import StorageService
from medvault.storage.account_directory import AccountDirectory
from medvault.storage.category_registry import CategoryRegistry
from medvault.storage.document_catalog import DocumentCatalog

TEST_SECRET = "test-secret"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 3, 15, 10, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage(tmp_path):
    return StorageService(root=str(tmp_path / "blobs"))


@pytest.fixture
def database(tmp_path):
    db = DatabaseService(database_url=f"sqlite:///{tmp_path / 'catalog.db'}")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def catalog(database, clock):
    return DocumentCatalog(database, clock=clock)


@pytest.fixture
def categories(database):
    return CategoryRegistry(database)


@pytest.fixture
def accounts(database, clock):
    return AccountDirectory(database, clock=clock)


@pytest.fixture
def audit_logger():
    return AuditLoggingService()


@pytest.fixture
def service(storage, catalog, categories, accounts, audit_logger, clock):
    return DocumentService(
        storage=storage,
        catalog=catalog,
        categories=categories,
        accounts=accounts,
        audit_logger=audit_logger,
        clock=clock,
    )


@pytest.fixture
def patient_p():
    return Actor(id="patient-p", capabilities=frozenset({Capability.PATIENT}))


@pytest.fixture
def patient_q():
    return Actor(id="patient-q", capabilities=frozenset({Capability.PATIENT}))


@pytest.fixture
def admin():
    return Actor(id="admin-1", capabilities=frozenset({Capability.ADMIN}))


def make_token(subject: str, roles, secret: str = TEST_SECRET) -> str:
    return jwt.encode({"sub": subject, "roles": list(roles)}, secret, algorithm="HS256")


def auth_headers(subject: str, *roles: str) -> dict:
    return {"Authorization": f"Bearer {make_token(subject, roles)}"}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        JWT_SECRET=TEST_SECRET,
        STORAGE_ROOT=str(tmp_path / "uploads"),
        DATABASE_URL=f"sqlite:///{tmp_path / 'api.db'}",
    )


@pytest.fixture
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
