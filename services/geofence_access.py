import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Iterable, Optional

from models.zone import Zone
from services.pin_credential import PinCredential
from services.zone_store import ZoneStore
from utils.datetime_helpers import ensure_utc, seconds_until
from utils.geofence import distance_within_radius, validate_coordinates

logger = logging.getLogger(__name__)


class LockState(str, Enum):
    UNLOCKED = "unlocked"
    LOCKED = "locked"


class AccessOutcome(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"
    LOCKED = "locked"


@dataclass(frozen=True)
class ZoneMatch:
    zone: Zone
    distance_meters: float


@dataclass(frozen=True)
class AccessDecision:
    outcome: AccessOutcome
    zone_id: str
    failed_attempts: int = 0
    attempts_remaining: int = 0
    retry_after_seconds: int = 0

    @property
    def allowed(self) -> bool:
        return self.outcome == AccessOutcome.ALLOWED


def _match_sort_key(match: ZoneMatch):
    # Total order so overlapping zones always resolve the same way:
    # nearest centre, then tighter fence, then older zone, then id
    created = ensure_utc(match.zone.created_at)
    return (
        match.distance_meters,
        match.zone.radius_meters,
        created.timestamp() if created is not None else 0.0,
        match.zone.id,
    )


class GeofenceAccessController:
    """
    Resolves map taps to zones and runs the per-zone lockout state machine.

    Lockout fields live on the zone row itself, so clearing client state
    cannot reset the counter. Every verification attempt is a single
    row-locked read-modify-write through the store.
    """

    def __init__(
        self,
        store: ZoneStore,
        credential: PinCredential,
        clock,
        lockout_threshold: int = 5,
        lock_window_seconds: int = 60,
    ):
        self.store = store
        self.credential = credential
        self.clock = clock
        self.lockout_threshold = lockout_threshold
        self.lock_window = timedelta(seconds=lock_window_seconds)

    def matches(self, latitude: float, longitude: float, zones: Optional[Iterable[Zone]] = None):
        """All zones whose fence contains the point, best match first."""
        validate_coordinates(latitude, longitude)
        candidates = self.store.find_all() if zones is None else zones

        found = []
        for zone in candidates:
            distance = distance_within_radius(
                latitude, longitude, zone.latitude, zone.longitude, zone.radius_meters
            )
            if distance is not None:
                found.append(ZoneMatch(zone=zone, distance_meters=distance))
        found.sort(key=_match_sort_key)
        return found

    def resolve(
        self, latitude: float, longitude: float, zones: Optional[Iterable[Zone]] = None
    ) -> Optional[ZoneMatch]:
        """
        The single zone a tap refers to, or None for empty space.

        `zones` lets a caller pass a pre-filtered candidate set (for example
        from a spatial index); without it every stored zone is scanned.
        """
        found = self.matches(latitude, longitude, zones)
        if not found:
            return None
        if len(found) > 1:
            logger.info(
                f"[GEOFENCE] Tap ({latitude},{longitude}) overlaps {len(found)} zones; "
                f"picked {found[0].zone.id}"
            )
        return found[0]

    def lock_state(self, zone: Zone) -> LockState:
        if zone.locked_until is not None and self.clock.now() < ensure_utc(zone.locked_until):
            return LockState.LOCKED
        return LockState.UNLOCKED

    def retry_after(self, zone: Zone) -> int:
        if zone.locked_until is None:
            return 0
        return seconds_until(zone.locked_until, self.clock.now())

    def attempt(self, zone_id: str, secret: str) -> AccessDecision:
        """
        Verify a PIN against a zone and apply the lockout policy.

        Malformed PINs raise InvalidInput before any state is touched. While
        the zone is locked the PIN is not hashed at all.
        """
        self.credential.validate_format(secret)

        with self.store.atomic(zone_id) as zone:
            now = self.clock.now()

            if zone.locked_until is not None and now < ensure_utc(zone.locked_until):
                retry = seconds_until(zone.locked_until, now)
                logger.info(f"[LOCKOUT] Zone {zone_id} still locked for {retry}s; attempt rejected")
                return AccessDecision(
                    outcome=AccessOutcome.LOCKED,
                    zone_id=zone_id,
                    retry_after_seconds=retry,
                )

            if self.credential.verify(secret, zone.pin_hash):
                zone.failed_attempts = 0
                zone.locked_until = None
                return AccessDecision(outcome=AccessOutcome.ALLOWED, zone_id=zone_id)

            attempts = zone.failed_attempts + 1
            zone.updated_at = now

            if attempts >= self.lockout_threshold:
                zone.failed_attempts = 0
                zone.locked_until = now + self.lock_window
                retry = seconds_until(zone.locked_until, now)
                logger.warning(
                    f"[LOCKOUT] Zone {zone_id} locked for {retry}s after {attempts} failed attempts"
                )
                return AccessDecision(
                    outcome=AccessOutcome.LOCKED,
                    zone_id=zone_id,
                    failed_attempts=attempts,
                    retry_after_seconds=retry,
                )

            zone.failed_attempts = attempts
            return AccessDecision(
                outcome=AccessOutcome.DENIED,
                zone_id=zone_id,
                failed_attempts=attempts,
                attempts_remaining=self.lockout_threshold - attempts,
            )
