import logging
import re
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status
from sqlmodel import Session

from core import firebase
from core.config import LockerSettings, get_settings
from db.session import get_session
from db.zone_store import SqlZoneStore
from services.geofence_access import GeofenceAccessController
from services.pin_credential import PinCredential
from services.zone_service import ZoneService
from utils.datetime_helpers import SystemClock

logger = logging.getLogger(__name__)

# Opaque per-install id generated by the client (a UUID in practice)
DEVICE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{8,128}$")

# Standard credentials exception
CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)

_system_clock = SystemClock()


def get_clock() -> SystemClock:
    return _system_clock


# Resolves the caller's owner id: a signed-in Firebase uid when a bearer
# token is present, otherwise the anonymous device id header
async def get_current_owner(
    request: Request,
    x_device_id: Annotated[str | None, Header(alias="X-Device-Id")] = None,
) -> str:
    auth_header = request.headers.get("Authorization", "")

    if auth_header:
        if not auth_header.startswith("Bearer "):
            raise CREDENTIALS_EXCEPTION
        token = auth_header.split(" ", 1)[1]
        try:
            decoded = firebase.verify_id_token(token)
        except Exception as e:
            logger.info(f"[AUTH] Rejected bearer token: {e}")
            raise CREDENTIALS_EXCEPTION
        uid = decoded.get("uid")
        if not uid:
            raise CREDENTIALS_EXCEPTION
        return f"user:{uid}"

    if not x_device_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Device-Id header or Authorization token.",
        )
    if not DEVICE_ID_RE.match(x_device_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Device-Id format.",
        )
    return f"device:{x_device_id}"


# Same as get_current_owner, but anonymous callers without a device id are allowed
async def get_optional_owner(
    request: Request,
    x_device_id: Annotated[str | None, Header(alias="X-Device-Id")] = None,
) -> str | None:
    if not request.headers.get("Authorization") and not x_device_id:
        return None
    return await get_current_owner(request, x_device_id)


def get_zone_store(session: Annotated[Session, Depends(get_session)]) -> SqlZoneStore:
    return SqlZoneStore(session)


def get_pin_credential(
    settings: Annotated[LockerSettings, Depends(get_settings)],
) -> PinCredential:
    return PinCredential.from_settings(settings)


def get_access_controller(
    store: Annotated[SqlZoneStore, Depends(get_zone_store)],
    credential: Annotated[PinCredential, Depends(get_pin_credential)],
    clock: Annotated[SystemClock, Depends(get_clock)],
    settings: Annotated[LockerSettings, Depends(get_settings)],
) -> GeofenceAccessController:
    return GeofenceAccessController(
        store=store,
        credential=credential,
        clock=clock,
        lockout_threshold=settings.lockout_threshold,
        lock_window_seconds=settings.lock_window_seconds,
    )


def get_zone_service(
    store: Annotated[SqlZoneStore, Depends(get_zone_store)],
    controller: Annotated[GeofenceAccessController, Depends(get_access_controller)],
    credential: Annotated[PinCredential, Depends(get_pin_credential)],
    clock: Annotated[SystemClock, Depends(get_clock)],
    settings: Annotated[LockerSettings, Depends(get_settings)],
) -> ZoneService:
    return ZoneService(
        store=store,
        controller=controller,
        credential=credential,
        clock=clock,
        settings=settings,
    )
