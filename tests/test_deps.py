"""
Tests for app/deps.py — get_current_user, ResourcesClient and service wiring.
ResourcesClient runs against httpx.MockTransport, so no network is involved.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest
from fastapi import HTTPException

from app import settings
from app.deps import (
    ResourcesClient,
    get_current_user,
    get_reservation_service,
    get_resources_client,
)
from app.errors import ResourceLookupUnavailableError
from app.service import ReservationService

from .factories import CUSTOMER_ID, RESOURCE_ID, VENDOR_ID, resource_dict


def _client_for(handler) -> ResourcesClient:
    transport = httpx.MockTransport(handler)
    return ResourcesClient(
        client=httpx.AsyncClient(transport=transport, base_url="http://resources-ms")
    )


def _json(payload, status_code: int = 200):
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=payload)

    return _handler


class TestGetCurrentUser:
    def test_valid_headers(self):
        user = get_current_user(
            x_user_id=str(CUSTOMER_ID), x_username="customer1", x_user_role="vendor"
        )
        assert user.id == CUSTOMER_ID
        assert user.username == "customer1"
        assert user.role == "vendor"
        assert user.is_admin is False

    def test_username_is_url_decoded(self):
        user = get_current_user(
            x_user_id=str(CUSTOMER_ID), x_username="Ana%20Petrova", x_user_role="customer"
        )
        assert user.username == "Ana Petrova"

    def test_admin_role(self):
        user = get_current_user(
            x_user_id=str(uuid4()), x_username="root", x_user_role="admin"
        )
        assert user.is_admin is True

    def test_invalid_user_id_raises_401(self):
        with pytest.raises(HTTPException) as exc_info:
            get_current_user(
                x_user_id="not-a-uuid", x_username="u", x_user_role="customer"
            )
        assert exc_info.value.status_code == 401


class TestResourcesClient:
    def test_parses_resource_snapshot(self):
        client = _client_for(_json(resource_dict()))
        info = asyncio.run(client.validate(RESOURCE_ID))
        assert info.id == RESOURCE_ID
        assert info.vendor_id == VENDOR_ID
        assert info.active is True
        assert info.price == Decimal("80.00")
        assert info.currency == "EUR"
        assert info.name == "Meeting Room A"

    def test_sends_internal_key_to_resource_path(self):
        seen: dict = {}

        def _handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["key"] = request.headers.get("X-Internal-Key")
            return httpx.Response(200, json=resource_dict())

        asyncio.run(_client_for(_handler).validate(RESOURCE_ID))
        assert seen["path"] == f"/internal/resources/{RESOURCE_ID}"
        assert seen["key"] == settings.internal_service_key

    def test_inactive_resource(self):
        client = _client_for(_json(resource_dict(is_active=False)))
        info = asyncio.run(client.validate(RESOURCE_ID))
        assert info.active is False

    def test_missing_currency_falls_back_to_default(self):
        payload = resource_dict()
        del payload["currency"]
        client = _client_for(_json(payload))
        info = asyncio.run(client.validate(RESOURCE_ID))
        assert info.currency == settings.default_currency

    def test_404_returns_none(self):
        client = _client_for(_json({"detail": "not found"}, status_code=404))
        assert asyncio.run(client.validate(RESOURCE_ID)) is None

    def test_5xx_raises_unavailable(self):
        client = _client_for(_json({"detail": "boom"}, status_code=500))
        with pytest.raises(ResourceLookupUnavailableError):
            asyncio.run(client.validate(RESOURCE_ID))

    def test_timeout_raises_unavailable(self):
        def _handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ResourceLookupUnavailableError, match="timeout"):
            asyncio.run(_client_for(_handler).validate(RESOURCE_ID))

    def test_connection_error_raises_unavailable(self):
        def _handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ResourceLookupUnavailableError):
            asyncio.run(_client_for(_handler).validate(RESOURCE_ID))

    @pytest.mark.parametrize(
        "payload",
        [
            {"id": str(RESOURCE_ID)},
            resource_dict(price="eighty"),
            resource_dict(vendor_id="nope"),
            resource_dict(is_active="false"),
            resource_dict(is_active=0),
        ],
    )
    def test_malformed_payload_raises_unavailable(self, payload):
        client = _client_for(_json(payload))
        with pytest.raises(ResourceLookupUnavailableError):
            asyncio.run(client.validate(RESOURCE_ID))

    def test_default_client_is_async_client(self):
        assert isinstance(ResourcesClient()._client, httpx.AsyncClient)


class TestWiring:
    def test_resources_client_singleton(self):
        assert get_resources_client() is get_resources_client()
        assert isinstance(get_resources_client(), ResourcesClient)

    def test_reservation_service_singleton(self):
        service = get_reservation_service()
        assert isinstance(service, ReservationService)
        assert service is get_reservation_service()
        assert service.resources is get_resources_client()
