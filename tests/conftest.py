# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.pop("REDIS_URL", None)

from parley.api.v1.dependencies import get_rate_limiter_dep  # noqa: E402
from parley.api.v1.endpoints.auth import create_access_token  # noqa: E402
from parley.core.body import PlaintextBody  # noqa: E402
from parley.core.settings import Settings  # noqa: E402
from parley.db.session import Base  # noqa: E402
from parley.db.session import get_db as app_get_session  # noqa: E402
from parley.main import app as fastapi_app  # noqa: E402
from parley.models import DirectMessage, User  # noqa: E402
from parley.services.ledger import MessageLedger  # noqa: E402
from parley.services.rate_limit import MessageRateLimiter  # noqa: E402

TEST_DB_URL = "sqlite://"


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def rate_limiter() -> MessageRateLimiter:
    """Return a fresh in-process limiter for each test."""
    return MessageRateLimiter(limit=1000, window_seconds=60)


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI,
    db_session: Session,
    rate_limiter: MessageRateLimiter,
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_rate_limiter_dep] = lambda: rate_limiter
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_rate_limiter_dep, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with the default read-state policies."""
    return Settings()  # type: ignore[call-arg]


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory that persists users with predictable ids."""

    def _make_user(user_id: str, display_name: str | None = None, public_key_jwk: str | None = None) -> User:
        user = User(
            id=user_id,
            display_name=display_name or user_id,
            public_key_jwk=public_key_jwk,
            created_at=0,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture()
def test_user(make_user: Callable[..., User]) -> User:
    """Create and return the primary test user."""
    return make_user("usr_alice", "Alice")


@pytest.fixture()
def other_user(make_user: Callable[..., User]) -> User:
    """Create and return a second test user."""
    return make_user("usr_bob", "Bob")


@pytest.fixture()
def third_user(make_user: Callable[..., User]) -> User:
    """Create a user who takes part in no thread with the others."""
    return make_user("usr_carol", "Carol")


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return {"Authorization": f"Bearer {create_access_token(test_user.id)}"}


@pytest.fixture()
def other_auth_token(other_user: User) -> dict[str, str]:
    """Return authorization headers for the secondary test user."""
    return {"Authorization": f"Bearer {create_access_token(other_user.id)}"}


@pytest.fixture()
def third_auth_token(third_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(third_user.id)}"}


@pytest.fixture()
def ledger(db_session: Session) -> MessageLedger:
    return MessageLedger(db_session)


@pytest.fixture()
def thread_id(ledger: MessageLedger, test_user: User, other_user: User) -> str:
    """Open the thread between the two primary users."""
    return ledger.ensure_thread(test_user.id, other_user.id).thread_id


@pytest.fixture()
def direct_message(ledger: MessageLedger, thread_id: str, test_user: User) -> DirectMessage:
    """A plaintext message from the primary user."""
    return ledger.append(thread_id, test_user.id, PlaintextBody("hello"))

