import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import field_serializer
from sqlmodel import Field, Index, SQLModel

from utils.datetime_helpers import format_utc_datetime


class ZoneVisibility(str, Enum):
    PRIVATE = "private"
    PUBLIC = "public"


def _new_zone_id() -> str:
    return uuid.uuid4().hex


# Geo-anchored, PIN-protected memory locker (a "pin" on the client map)
class Zone(SQLModel, table=True):
    __tablename__ = "zones"

    __table_args__ = (
        # "My zones" listing
        Index("ix_zones_owner_id", "owner_id"),
        # Share links resolve by token; at most one zone per token
        Index("ix_zones_share_token", "share_token", unique=True),
        Index("ix_zones_visibility", "visibility"),
    )

    id: str = Field(default_factory=_new_zone_id, primary_key=True)
    name: Optional[str] = Field(default=None, max_length=120)
    latitude: float
    longitude: float
    radius_meters: float
    pin_hash: str
    owner_id: str
    visibility: ZoneVisibility = Field(default=ZoneVisibility.PRIVATE)
    share_token: Optional[str] = Field(default=None)
    failed_attempts: int = Field(default=0)
    locked_until: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_public(self) -> bool:
        return self.visibility == ZoneVisibility.PUBLIC

    @field_serializer("created_at", "updated_at", "locked_until")
    def serialize_timestamps(self, dt: Optional[datetime]) -> Optional[str]:
        return format_utc_datetime(dt)
