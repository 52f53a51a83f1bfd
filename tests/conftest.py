import os
from contextlib import redirect_stderr, redirect_stdout
from io import StringIO
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config

# Ensure tests run against SQLite with fixed secrets
os.environ.setdefault("DATABASE_URL", "sqlite:////tmp/drinkwise_test.db")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
os.environ.setdefault("INACTIVITY_CHECK_SECONDS", "0")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

from fastapi.testclient import TestClient
from drinkwise.config import get_settings
from drinkwise.db import init_db
from drinkwise.dependencies import get_redis
from drinkwise.main import app
from tests.utils.factories import make_user
from tests.utils.auth import build_auth_headers


class FakePipeline:
    def __init__(self, store):
        self.store = store
        self.ops = []

    def incr(self, key):
        self.ops.append(("incr", key))
        return self

    def expire(self, key, ttl):
        self.ops.append(("expire", key, ttl))
        return self

    async def execute(self):
        results = []
        for op in self.ops:
            if op[0] == "incr":
                key = op[1]
                self.store[key] = self.store.get(key, 0) + 1
                results.append(self.store[key])
            else:
                results.append(True)
        self.ops.clear()
        return results


class FakeRedis:
    def __init__(self):
        self.store = {}

    def pipeline(self):
        return FakePipeline(self.store)


@pytest.fixture(scope="session", autouse=True)
def apply_migrations():
    """Apply Alembic migrations before running tests."""
    db_url = os.environ["DATABASE_URL"]
    if db_url.startswith("sqlite:///"):
        db_path = Path(db_url.replace("sqlite:///", ""))
        if db_path.exists():
            db_path.unlink()
    cfg_path = Path(__file__).resolve().parent.parent / "alembic.ini"
    config = Config(str(cfg_path))
    config.set_main_option(
        "script_location", str(cfg_path.parent / "migrations")
    )
    stdout_buf, stderr_buf = StringIO(), StringIO()
    try:
        with redirect_stdout(stdout_buf), redirect_stderr(stderr_buf):
            command.upgrade(config, "head")
    except Exception as exc:
        print("Alembic upgrade failed:", exc)
        print("stdout:\n", stdout_buf.getvalue())
        print("stderr:\n", stderr_buf.getvalue())
        raise
    yield
    if db_url.startswith("sqlite:///"):
        db_path = Path(db_url.replace("sqlite:///", ""))
        if db_path.exists():
            db_path.unlink()


@pytest.fixture(scope="session")
def database(apply_migrations):
    db = init_db(get_settings())
    yield db
    db.dispose()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def client(apply_migrations, fake_redis):
    """Yields a TestClient with lifespan events and an in-memory Redis."""
    app.dependency_overrides[get_redis] = lambda: fake_redis
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_redis, None)


@pytest.fixture
def user(database):
    return make_user(database)


@pytest.fixture
def other_user(database):
    return make_user(database, name="Other User")


@pytest.fixture
def headers(user):
    return build_auth_headers(user.id)
