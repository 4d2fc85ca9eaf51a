from __future__ import annotations

import os

# The app builds its engine at import time; point it at SQLite before that happens.
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["RECAPTCHA_SECRET"] = ""

from collections.abc import Generator
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.auth.deps import Principal, get_current_principal
from app.core.db import Base, get_db
from app.main import app
from app.models.sponsorship import SponsorshipRequest

SQLALCHEMY_TEST_URL = "sqlite+pysqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_TEST_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def override_get_db() -> Generator[Session, None, None]:
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def setup_database() -> Generator[None, None, None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def authorize(client: TestClient):
    def _apply(principal: Principal):
        app.dependency_overrides[get_current_principal] = lambda: principal

    yield _apply
    app.dependency_overrides.pop(get_current_principal, None)


@pytest.fixture()
def sponsorship_admin() -> Principal:
    return Principal(subject="ops@example.com", roles={"SponsorshipAdmin"})


@pytest.fixture()
def checkout_service() -> Principal:
    return Principal(subject="checkout-service", roles={"Checkout"})


@pytest.fixture()
def viewer() -> Principal:
    return Principal(subject="viewer@example.com", roles={"Viewer"})


@pytest.fixture()
def make_request(db_session: Session):
    def _make(
        *,
        placement: str = "home_top",
        slot_index: int | None = 0,
        duration_days: int = 30,
        product_ref: str = "prod-100",
        note: str | None = None,
    ) -> SponsorshipRequest:
        record = SponsorshipRequest(
            requester_email="seller@example.com",
            product_ref=product_ref,
            placement=placement,
            slot_index=slot_index,
            duration_days=duration_days,
            note=note,
            status="pending",
            created_at=T0,
            updated_at=T0,
        )
        db_session.add(record)
        db_session.commit()
        db_session.refresh(record)
        return record

    return _make
