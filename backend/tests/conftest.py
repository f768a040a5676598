from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from datalens.config import Settings
from datalens.core.registry import build_registry
from datalens.db import create_db_engine, init_db, make_session_factory
from datalens.main import create_app

from fakes import FakeProviders


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        alpha_vantage_api_key="demo",
        fred_api_key=None,
        http_timeout_seconds=2.0,
        widget_timeout_seconds=2.0,
        user_id_header="X-User-Id",
        cors_origins=("*",),
        log_level="WARNING",
    )


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
def http_client(providers):
    return providers.client()


@pytest.fixture
def registry(test_settings, http_client):
    return build_registry(test_settings, http_client)


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(test_settings, registry):
    app = create_app(test_settings, registry=registry)
    with TestClient(app) as c:
        yield c
