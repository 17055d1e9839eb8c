from __future__ import annotations

import os
import tempfile
from typing import Generator, Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.database import Base, get_db
from app.main import app
from app import models


@pytest.fixture(scope="session")
def test_db_url() -> Generator[str, Any, Any]:
    # Temp-file SQLite so the developer database is never touched
    fd, path = tempfile.mkstemp(prefix="fin_test_", suffix=".sqlite3")
    os.close(fd)
    url = f"sqlite:///{path}"
    yield url
    try:
        os.remove(path)
    except OSError:
        pass


@pytest.fixture(scope="session")
def engine(test_db_url: str):
    eng = create_engine(test_db_url, connect_args={"check_same_thread": False})
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Any, Any, Any]:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    # Fresh seed per test: four users and one system category
    for username, name in (("alice", "Alice"), ("bob", "Bob"), ("carol", "Carol"), ("dave", "Dave")):
        session.add(models.User(email=f"{username}@example.com", username=username, name=name, is_active=True))
    session.add(models.Category(name="Food", user_id=None, is_system=True))
    session.commit()

    try:
        yield session
    finally:
        session.close()
        with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
            for tbl in Base.metadata.tables.values():
                conn.execute(tbl.delete())
            if engine.dialect.name == "sqlite":
                conn.exec_driver_sql("PRAGMA foreign_keys=ON")


@pytest.fixture(autouse=True)
def override_dependency(db_session):
    # FastAPI DI override
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def users(db_session) -> dict[str, models.User]:
    rows = db_session.query(models.User).all()
    return {u.username: u for u in rows}


@pytest.fixture()
def food(db_session) -> models.Category:
    return db_session.query(models.Category).filter_by(name="Food").one()


@pytest.fixture()
def auth():
    def _headers(user: models.User) -> dict[str, str]:
        return {"X-User-Id": str(user.id)}

    return _headers
