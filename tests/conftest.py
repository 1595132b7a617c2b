"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files — pytest discovers this by convention.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise import Tortoise, connections

from app.cache import get_slots_cache
from app.deps import get_current_user, get_reservation_service
from app.errors import install_error_handlers
from app.routers.booking import router
from app.service import ReservationService

from .factories import NOW, make_admin, make_customer
from .fakes import InMemoryBookingStore, StubResources

# ---------------------------------------------------------------------------
# Engine fixtures: real service over in-memory collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def store() -> InMemoryBookingStore:
    return InMemoryBookingStore()


@pytest.fixture()
def resources() -> StubResources:
    return StubResources()


def make_service(store, resources, now=NOW, **kwargs) -> ReservationService:
    return ReservationService(store, resources, clock=lambda: now, **kwargs)


@pytest.fixture()
def service(store, resources) -> ReservationService:
    return make_service(store, resources)


# ---------------------------------------------------------------------------
# Database: Tortoise on in-memory SQLite, driven with asyncio.run
# ---------------------------------------------------------------------------


def run_with_db(fn):
    """Run `await fn()` against a fresh in-memory database."""

    async def _main():
        await Tortoise.init(
            db_url="sqlite://:memory:",
            modules={"models": ["app.models"]},
            use_tz=True,
        )
        await Tortoise.generate_schemas()
        try:
            return await fn()
        finally:
            await connections.close_all()

    return asyncio.run(_main())


# ---------------------------------------------------------------------------
# App builder — used by all client fixtures
# ---------------------------------------------------------------------------


def _noop_slots_cache():
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.set = AsyncMock(return_value=None)
    mock.invalidate = AsyncMock(return_value=None)
    return mock


def build_app(current_user, service, slots_cache=None) -> FastAPI:
    """
    Fresh FastAPI app with the identity dependency overridden to return
    `current_user` unconditionally and the given ReservationService injected.
    Defaults to a no-op slots cache, avoiding real Redis calls.
    """
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(router)

    async def _user():
        return current_user

    cache = slots_cache if slots_cache is not None else _noop_slots_cache()
    app.dependency_overrides[get_current_user] = _user
    app.dependency_overrides[get_reservation_service] = lambda: service
    app.dependency_overrides[get_slots_cache] = lambda: cache
    return app


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def customer_client(service):
    return TestClient(build_app(make_customer(), service), raise_server_exceptions=True)


@pytest.fixture()
def admin_client(service):
    return TestClient(build_app(make_admin(), service), raise_server_exceptions=True)


@pytest.fixture()
def anon_app(service):
    """
    App with only the service injected; the real identity dependency runs,
    so missing or malformed gateway headers surface as 401/422.
    """
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(router)
    app.dependency_overrides[get_reservation_service] = lambda: service
    app.dependency_overrides[get_slots_cache] = _noop_slots_cache
    return app


@pytest.fixture()
def client_factory(service):
    def _make(current_user, service_override=None, slots_cache=None) -> TestClient:
        return TestClient(
            build_app(
                current_user,
                service_override if service_override is not None else service,
                slots_cache=slots_cache,
            ),
            raise_server_exceptions=True,
        )

    return _make
