# Insert sample zones for local development
import os

from sqlmodel import Session, SQLModel, select

from core.config import get_settings
from db.session import engine
from models.zone import Zone, ZoneVisibility
from models.zone_file import FileKind, ZoneFile
from services.pin_credential import PinCredential

DEMO_OWNER_ID = os.getenv("SEED_OWNER_ID", "device:demo-device-0001")
DEMO_PIN = os.getenv("SEED_PIN", "2468")

DEMO_ZONES = [
    {
        "name": "Harbour bench",
        "latitude": 38.9931538759034,
        "longitude": -76.9428334513501,
        "radius_meters": 100.0,
        "visibility": ZoneVisibility.PRIVATE,
    },
    {
        "name": "Campus fountain",
        "latitude": 38.9869,
        "longitude": -76.9426,
        "radius_meters": 250.0,
        "visibility": ZoneVisibility.PUBLIC,
    },
]


def seed_zones():
    SQLModel.metadata.create_all(engine)
    credential = PinCredential.from_settings(get_settings())

    with Session(engine) as session:
        for spec in DEMO_ZONES:
            existing = session.exec(select(Zone).where(Zone.name == spec["name"])).first()
            if existing:
                print(f"{spec['name']} already exists")
                continue

            zone = Zone(
                owner_id=DEMO_OWNER_ID,
                pin_hash=credential.hash(DEMO_PIN),
                **spec,
            )
            session.add(zone)
            session.add(
                ZoneFile(
                    zone_id=zone.id,
                    name="welcome.txt",
                    mime_type="text/plain",
                    kind=FileKind.DOCUMENT,
                    size_bytes=64,
                    storage_path=f"{zone.id}/welcome.txt",
                )
            )
            print(f"Added {spec['name']} ({zone.id})")

        session.commit()


if __name__ == "__main__":
    seed_zones()
