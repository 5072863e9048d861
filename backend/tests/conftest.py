from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from services.store import SessionStore


@pytest.fixture
def store() -> SessionStore:
    """A fresh store per test; nothing is shared through module globals."""
    return SessionStore()


@pytest.fixture
def app(store: SessionStore) -> FastAPI:
    return create_app(store=store, settings=Settings())


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    # Entering the client runs the lifespan and keeps one event loop for every websocket.
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def anyio_backend() -> str:
    # The services are built on asyncio primitives, so async tests run on asyncio only.
    return "asyncio"
