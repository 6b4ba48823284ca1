from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import field_serializer
from sqlmodel import Field, Index, SQLModel

from utils.datetime_helpers import format_utc_datetime


# Closed set of content kinds a zone can hold
class FileKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    DOCUMENT = "document"


# Metadata for one piece of content attached to a zone.
# The bytes live in object storage at storage_path.
class ZoneFile(SQLModel, table=True):
    __tablename__ = "zone_files"

    __table_args__ = (
        Index("ix_zone_files_zone_id", "zone_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    zone_id: str = Field(foreign_key="zones.id")
    name: str
    mime_type: str
    kind: FileKind
    size_bytes: int = Field(default=0)
    storage_path: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("created_at")
    def serialize_created_at(self, dt: datetime) -> str:
        result = format_utc_datetime(dt)
        return result if result is not None else dt.isoformat()
