from datetime import datetime
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field as PydanticField, field_serializer

from core.deps import get_current_owner, get_zone_service
from models.access_log import AccessVia, ZoneAccessLog
from models.zone import Zone, ZoneVisibility
from models.zone_file import FileKind, ZoneFile
from services.zone_policy import is_owner
from services.zone_service import NewFile, Reveal, ZoneService
from utils.datetime_helpers import format_utc_datetime

router = APIRouter()


# --- Pydantic Models for Requests ---


class TapRequest(BaseModel):
    latitude: float
    longitude: float


class FileIn(BaseModel):
    name: str = PydanticField(..., min_length=1, max_length=255)
    mime_type: str
    storage_path: str = PydanticField(..., min_length=1, description="Object storage path of the uploaded bytes")
    size_bytes: int = PydanticField(default=0, ge=0)

    def to_new_file(self) -> NewFile:
        return NewFile(
            name=self.name,
            mime_type=self.mime_type,
            storage_path=self.storage_path,
            size_bytes=self.size_bytes,
        )


class ZoneCreate(BaseModel):
    latitude: float
    longitude: float
    # Format is checked by the service so every PIN error has the same shape
    pin: str
    files: List[FileIn]
    radius_meters: Optional[float] = None
    name: Optional[str] = PydanticField(default=None, max_length=120)
    visibility: ZoneVisibility = ZoneVisibility.PRIVATE


class UnlockRequest(BaseModel):
    pin: str


class FilesAppend(BaseModel):
    files: List[FileIn]


class VisibilityUpdate(BaseModel):
    visibility: ZoneVisibility


class PinReplace(BaseModel):
    current_pin: str
    new_pin: str


# --- Pydantic Models for Responses ---
# pin_hash and lockout counters never leave the service


def _zone_fields(zone: Zone, owner_id: Optional[str]) -> dict:
    return {
        "id": zone.id,
        "name": zone.name,
        "latitude": zone.latitude,
        "longitude": zone.longitude,
        "radius_meters": zone.radius_meters,
        "visibility": zone.visibility,
        "is_owner": is_owner(zone, owner_id),
        "created_at": zone.created_at,
        "updated_at": zone.updated_at,
    }


class ZoneSummary(BaseModel):
    id: str
    name: Optional[str] = None
    latitude: float
    longitude: float
    radius_meters: float
    visibility: ZoneVisibility
    is_owner: bool = False
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def serialize_timestamps(self, dt: datetime) -> str:
        result = format_utc_datetime(dt)
        return result if result is not None else dt.isoformat()

    @classmethod
    def from_zone(cls, zone: Zone, owner_id: Optional[str]) -> "ZoneSummary":
        return cls(**_zone_fields(zone, owner_id))


class OwnedZoneSummary(ZoneSummary):
    share_token: Optional[str] = None

    @classmethod
    def from_zone(cls, zone: Zone, owner_id: Optional[str]) -> "OwnedZoneSummary":
        return cls(**_zone_fields(zone, owner_id), share_token=zone.share_token)


class FileOut(BaseModel):
    id: int
    name: str
    mime_type: str
    kind: FileKind
    size_bytes: int
    storage_path: str
    created_at: datetime

    @field_serializer("created_at")
    def serialize_created_at(self, dt: datetime) -> str:
        result = format_utc_datetime(dt)
        return result if result is not None else dt.isoformat()

    @classmethod
    def from_file(cls, f: ZoneFile) -> "FileOut":
        return cls(
            id=f.id,
            name=f.name,
            mime_type=f.mime_type,
            kind=f.kind,
            size_bytes=f.size_bytes,
            storage_path=f.storage_path,
            created_at=f.created_at,
        )


class TapResponse(BaseModel):
    status: str  # "match" or "empty"
    zone: Optional[ZoneSummary] = None
    distance_meters: Optional[float] = None
    retry_after_seconds: int = 0


class RevealResponse(BaseModel):
    status: str = "success"
    via: AccessVia
    zone: ZoneSummary
    files: List[FileOut]

    @classmethod
    def from_reveal(cls, reveal: Reveal, owner_id: Optional[str]) -> "RevealResponse":
        return cls(
            via=reveal.via,
            zone=ZoneSummary.from_zone(reveal.zone, owner_id),
            files=[FileOut.from_file(f) for f in reveal.files],
        )


class ShareTokenResponse(BaseModel):
    status: str = "success"
    zone_id: str
    share_token: Optional[str] = None


class AccessLogEntry(BaseModel):
    via: AccessVia
    accessor_id: Optional[str] = None
    accessed_at: datetime

    @field_serializer("accessed_at")
    def serialize_accessed_at(self, dt: datetime) -> str:
        result = format_utc_datetime(dt)
        return result if result is not None else dt.isoformat()

    @classmethod
    def from_entry(cls, entry: ZoneAccessLog) -> "AccessLogEntry":
        return cls(via=entry.via, accessor_id=entry.accessor_id, accessed_at=entry.accessed_at)


OwnerId = Annotated[str, Depends(get_current_owner)]
Service = Annotated[ZoneService, Depends(get_zone_service)]


# --- API Endpoints ---


# Resolve a map tap to an existing zone or empty space
@router.post("/tap", response_model=TapResponse)
def tap_location(data: TapRequest, owner_id: OwnerId, service: Service):
    result = service.tap(owner_id, data.latitude, data.longitude)
    if result.match is None:
        return TapResponse(status="empty")
    return TapResponse(
        status="match",
        zone=ZoneSummary.from_zone(result.match.zone, owner_id),
        distance_meters=round(result.match.distance_meters, 2),
        retry_after_seconds=result.retry_after_seconds,
    )


@router.post("", response_model=OwnedZoneSummary, status_code=status.HTTP_201_CREATED)
def create_zone(data: ZoneCreate, owner_id: OwnerId, service: Service):
    zone = service.create_zone(
        owner_id=owner_id,
        latitude=data.latitude,
        longitude=data.longitude,
        pin=data.pin,
        files=[f.to_new_file() for f in data.files],
        radius_meters=data.radius_meters,
        name=data.name,
        visibility=data.visibility,
    )
    return OwnedZoneSummary.from_zone(zone, owner_id)


# Zones drawn on the caller's map: their own plus every public one
@router.get("", response_model=List[ZoneSummary])
def list_visible_zones(owner_id: OwnerId, service: Service):
    return [ZoneSummary.from_zone(z, owner_id) for z in service.list_visible_zones(owner_id)]


@router.get("/mine", response_model=List[OwnedZoneSummary])
def list_my_zones(owner_id: OwnerId, service: Service):
    return [OwnedZoneSummary.from_zone(z, owner_id) for z in service.list_my_zones(owner_id)]


@router.post("/{zone_id}/unlock", response_model=RevealResponse)
def unlock_zone(zone_id: str, data: UnlockRequest, owner_id: OwnerId, service: Service):
    reveal = service.unlock(owner_id, zone_id, data.pin)
    return RevealResponse.from_reveal(reveal, owner_id)


@router.post("/{zone_id}/files", response_model=List[FileOut], status_code=status.HTTP_201_CREATED)
def append_files(zone_id: str, data: FilesAppend, owner_id: OwnerId, service: Service):
    added = service.append_files(owner_id, zone_id, [f.to_new_file() for f in data.files])
    return [FileOut.from_file(f) for f in added]


@router.put("/{zone_id}/visibility", response_model=OwnedZoneSummary)
def update_visibility(zone_id: str, data: VisibilityUpdate, owner_id: OwnerId, service: Service):
    zone = service.set_visibility(owner_id, zone_id, data.visibility)
    return OwnedZoneSummary.from_zone(zone, owner_id)


@router.put("/{zone_id}/pin", response_model=OwnedZoneSummary)
def replace_pin(zone_id: str, data: PinReplace, owner_id: OwnerId, service: Service):
    zone = service.replace_pin(owner_id, zone_id, data.current_pin, data.new_pin)
    return OwnedZoneSummary.from_zone(zone, owner_id)


@router.post("/{zone_id}/share", response_model=ShareTokenResponse)
def issue_share_link(
    zone_id: str,
    owner_id: OwnerId,
    service: Service,
    rotate: bool = Query(default=False, description="Replace an existing link with a new one"),
):
    token = service.issue_share_token(owner_id, zone_id, rotate=rotate)
    return ShareTokenResponse(zone_id=zone_id, share_token=token)


@router.delete("/{zone_id}/share", response_model=ShareTokenResponse)
def revoke_share_link(zone_id: str, owner_id: OwnerId, service: Service):
    service.revoke_share_token(owner_id, zone_id)
    return ShareTokenResponse(zone_id=zone_id, share_token=None)


@router.get("/{zone_id}/access-log", response_model=List[AccessLogEntry])
def get_access_log(
    zone_id: str,
    owner_id: OwnerId,
    service: Service,
    limit: int = Query(default=50, ge=1, le=500),
):
    return [AccessLogEntry.from_entry(e) for e in service.access_log(owner_id, zone_id, limit=limit)]


@router.delete("/{zone_id}", status_code=status.HTTP_200_OK)
def delete_zone(zone_id: str, owner_id: OwnerId, service: Service):
    service.delete_zone(owner_id, zone_id)
    return {
        "status": "success",
        "message": f"Zone '{zone_id}' deleted successfully.",
    }
