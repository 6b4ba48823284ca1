import os
from datetime import datetime, timedelta, timezone

import pytest

# Keep the app's module-level engine off disk during tests
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

import models  # noqa: E402,F401  (registers every table)
from core.config import LockerSettings  # noqa: E402
from db.zone_store import SqlZoneStore  # noqa: E402
from models.zone import Zone, ZoneVisibility  # noqa: E402
from services.geofence_access import GeofenceAccessController  # noqa: E402
from services.pin_credential import PinCredential  # noqa: E402
from services.zone_service import ZoneService  # noqa: E402

START = datetime(2025, 6, 7, 13, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = START):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


class CountingCredential(PinCredential):
    """PinCredential that records how often a hash comparison ran."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.verify_calls = 0

    def verify(self, secret, stored_hash) -> bool:
        self.verify_calls += 1
        return PinCredential.verify(secret, stored_hash)


@pytest.fixture()
def settings():
    # Lowest bcrypt cost keeps the suite fast
    return LockerSettings(bcrypt_rounds=4)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def store(session):
    return SqlZoneStore(session)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def credential(settings):
    return CountingCredential(
        rounds=settings.bcrypt_rounds,
        min_length=settings.pin_min_length,
        max_length=settings.pin_max_length,
    )


@pytest.fixture()
def controller(store, credential, clock, settings):
    return GeofenceAccessController(
        store=store,
        credential=credential,
        clock=clock,
        lockout_threshold=settings.lockout_threshold,
        lock_window_seconds=settings.lock_window_seconds,
    )


@pytest.fixture()
def service(store, controller, credential, clock, settings):
    return ZoneService(
        store=store,
        controller=controller,
        credential=credential,
        clock=clock,
        settings=settings,
    )


@pytest.fixture()
def make_zone(store, credential, clock):
    """Insert a zone directly, bypassing the creation rules."""

    def _make(
        latitude=0.0,
        longitude=0.0,
        radius_meters=100.0,
        pin="1234",
        owner_id="device:owner-device-1",
        visibility=ZoneVisibility.PRIVATE,
        pin_hash=None,
        **extra,
    ) -> Zone:
        zone = Zone(
            latitude=latitude,
            longitude=longitude,
            radius_meters=radius_meters,
            pin_hash=pin_hash or credential.hash(pin),
            owner_id=owner_id,
            visibility=visibility,
            created_at=extra.pop("created_at", clock.now()),
            updated_at=clock.now(),
            **extra,
        )
        return store.save(zone)

    return _make


@pytest.fixture()
def client(engine, clock, settings):
    from core.config import get_settings
    from core.deps import get_clock
    from db.session import get_session
    from main import app

    def _session_override():
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_settings] = lambda: settings
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
