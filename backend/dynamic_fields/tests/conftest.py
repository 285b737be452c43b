import os
os.environ["TESTING"] = "1"
os.environ.setdefault("DYNAMIC_FIELD_CACHE_BACKEND", "memory")
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[2]))

from dynamic_fields import valid
from dynamic_fields.backends import BackendResolver, reset_backend_resolver
from dynamic_fields.backends.base import BackendContext
from dynamic_fields.cache import MemoryCache, reset_cache
from dynamic_fields.config import RegistrySettings
from dynamic_fields.context import build_context
from dynamic_fields.database import Base, get_db
from dynamic_fields.main import app
from dynamic_fields.registry import DynamicFieldRegistry
from dynamic_fields.routes.dynamic_fields import get_registry

SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def fresh_schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        valid.seed_valid_statuses(db)
    finally:
        db.close()
    reset_cache()
    reset_backend_resolver()
    yield


@pytest.fixture
def settings():
    return RegistrySettings(database_url=SQLALCHEMY_DATABASE_URL, testing=True)


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def resolver(settings, cache):
    return BackendResolver(BackendContext(settings=settings, cache=cache))


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def registry(db, settings, cache, resolver):
    return DynamicFieldRegistry(
        build_context(db, settings=settings, cache=cache, resolver=resolver)
    )


@pytest.fixture
def client(settings, cache, resolver):
    def override_get_registry():
        session = TestingSessionLocal()
        try:
            yield DynamicFieldRegistry(
                build_context(session, settings=settings, cache=cache, resolver=resolver)
            )
        finally:
            session.close()

    app.dependency_overrides[get_registry] = override_get_registry
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_registry, None)


def add_field(registry, name, field_order, **overrides):
    """
    purpose: shorthand for adding a Text definition with sensible defaults
    outputs: id of the created definition
    """

    params = {
        "name": name,
        "label": overrides.pop("label", name),
        "field_order": field_order,
        "field_type": "Text",
        "object_type": "Ticket",
        "config": {},
        "valid_id": 1,
        "user_id": 7,
    }
    params.update(overrides)
    return registry.add(**params)


def orders_by_name(registry):
    return {
        record.name: record.field_order
        for record in registry.list_full(valid=False)
    }
