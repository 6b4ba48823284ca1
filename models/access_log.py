from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import field_serializer
from sqlmodel import Field, Index, SQLModel

from utils.datetime_helpers import format_utc_datetime


class AccessVia(str, Enum):
    PIN = "pin"
    SHARE = "share"


# One row per successful reveal of a zone's contents
class ZoneAccessLog(SQLModel, table=True):
    __tablename__ = "zone_access_log"

    __table_args__ = (
        Index("ix_zone_access_log_zone_id", "zone_id"),
        Index("ix_zone_access_log_zone_id_accessed_at", "zone_id", "accessed_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    zone_id: str = Field(foreign_key="zones.id")
    via: AccessVia
    accessor_id: Optional[str] = Field(default=None)
    accessed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("accessed_at")
    def serialize_accessed_at(self, dt: datetime) -> str:
        result = format_utc_datetime(dt)
        return result if result is not None else dt.isoformat()
