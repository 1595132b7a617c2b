from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from urllib.parse import unquote
from uuid import UUID

import httpx
from fastapi import Header, HTTPException, status
from loguru import logger

from app import settings
from app.cancellation import load_policy
from app.crud import booking_crud
from app.errors import ResourceLookupUnavailableError
from app.interfaces import ResourceInfo
from app.service import ReservationService

# ---------------------------------------------------------------------------
# Identity context, resolved upstream and trusted as given
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CurrentUser:
    id: UUID
    username: str
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def get_current_user(
    x_user_id: str = Header(...),
    x_username: str = Header(...),
    x_user_role: str = Header(default="customer"),
) -> CurrentUser:
    """
    Reads the identity headers injected by the gateway after token validation.
    The token has already been verified — we just trust these headers.
    """
    try:
        user_id = UUID(x_user_id)
    except (ValueError, TypeError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identity from gateway",
        ) from None

    return CurrentUser(id=user_id, username=unquote(x_username), role=x_user_role)


# ---------------------------------------------------------------------------
# ResourcesClient: resources-ms internal API
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def _get_resources_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.resources_ms_url,
        timeout=httpx.Timeout(settings.resource_lookup_timeout),
        follow_redirects=True,
    )


class ResourcesClient:
    """
    Thin async wrapper around the resources-ms internal API.
    Authenticates with the shared internal service key.
    Transport failures are surfaced as ResourceLookupUnavailableError so they
    are never mistaken for "resource inactive".
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._override = client

    @property
    def _client(self) -> httpx.AsyncClient:
        return self._override or _get_resources_http_client()

    def _headers(self) -> dict[str, str]:
        return {"X-Internal-Key": settings.internal_service_key}

    async def validate(self, resource_id: UUID) -> ResourceInfo | None:
        """Returns the resource snapshot or None if 404."""
        try:
            resp = await self._client.get(
                f"/internal/resources/{resource_id}", headers=self._headers()
            )
        except httpx.TimeoutException as exc:
            logger.error("resources-ms timed out for resource_id={}", resource_id)
            raise ResourceLookupUnavailableError(
                "Unable to verify the resource at this time (timeout)"
            ) from exc
        except httpx.RequestError as exc:
            logger.error("resources-ms unreachable: {}", exc)
            raise ResourceLookupUnavailableError(
                "Unable to verify the resource at this time"
            ) from exc

        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            logger.error(
                "resources-ms returned {} for resource_id={}",
                resp.status_code,
                resource_id,
            )
            raise ResourceLookupUnavailableError(
                f"resources-ms returned {resp.status_code}"
            )

        try:
            data = resp.json()
            active = data["is_active"]
            if not isinstance(active, bool):
                raise TypeError(f"is_active must be a boolean, got {active!r}")
            return ResourceInfo(
                id=UUID(str(data["id"])),
                vendor_id=UUID(str(data["vendor_id"])),
                active=active,
                price=Decimal(str(data["price"])),
                currency=data.get("currency") or settings.default_currency,
                name=data.get("name"),
            )
        except (ValueError, KeyError, TypeError, InvalidOperation) as exc:
            logger.error("Malformed resources-ms payload for resource_id={}", resource_id)
            raise ResourceLookupUnavailableError(
                "resources-ms returned an unreadable resource"
            ) from exc


_resources_client = ResourcesClient()


def get_resources_client() -> ResourcesClient:
    return _resources_client


# ---------------------------------------------------------------------------
# ReservationService, wired once per process
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_reservation_service() -> ReservationService:
    return ReservationService(
        booking_crud,
        get_resources_client(),
        policy=load_policy(settings.cancellation_policy),
    )
