from __future__ import annotations

import datetime as dt
import os
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Generator

_TEST_DIR = tempfile.mkdtemp(prefix="time-reporting-tests-")
os.environ.setdefault("TR_SQLITE_PATH", str(Path(_TEST_DIR) / "app.db"))
os.environ.setdefault("TR_TOKEN_SECRET", "test-secret")

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from time_reporting import models, services  # noqa: E402
from time_reporting.acl import parse_acl_claims  # noqa: E402
from time_reporting.catalog import seed_catalog  # noqa: E402
from time_reporting.config import settings  # noqa: E402
from time_reporting.database import get_db  # noqa: E402
from time_reporting.identity import Principal  # noqa: E402
from time_reporting.main import app  # noqa: E402


@pytest.fixture(scope="function")
def engine(tmp_path: Path):
    url = f"sqlite:///{tmp_path / 'test.db'}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    with sessionmaker(bind=engine, future=True)() as session:
        seed_catalog(session)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_principal() -> Callable[..., Principal]:
    def _make(user_id: str = "alice", *acl: str, email: str | None = None, name: str | None = None) -> Principal:
        return Principal(user_id=user_id, email=email, name=name, acl=parse_acl_claims(list(acl)))

    return _make


@pytest.fixture()
def make_token() -> Callable[..., str]:
    def _make(user_id: str = "alice", *acl: str, **claims: Any) -> str:
        payload = {"sub": user_id, settings.acl_claim: list(acl), **claims}
        return jwt.encode(payload, settings.token_secret, algorithm="HS256")

    return _make


@pytest.fixture()
def auth_headers(make_token) -> Callable[..., dict[str, str]]:
    def _make(user_id: str = "alice", *acl: str, **claims: Any) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user_id, *acl, **claims)}"}

    return _make


@pytest.fixture()
def sample_day() -> dt.date:
    return dt.date(2025, 10, 21)


@pytest.fixture()
def logged_entry(session: Session, make_principal, sample_day: dt.date) -> Callable[..., models.TimeEntry]:
    """Create an INTERNAL/Development entry for ``user_id`` with Track and Edit."""

    def _make(user_id: str = "alice", **overrides: Any) -> models.TimeEntry:
        principal = make_principal(user_id, "Project/INTERNAL=T,E")
        values: dict[str, Any] = {
            "project_code": "INTERNAL",
            "task": "Development",
            "standard_hours": Decimal("8"),
            "start_date": sample_day,
            "completion_date": sample_day,
        }
        values.update(overrides)
        return services.log_time(session, principal, **values)

    return _make
