import logging
import secrets
from dataclasses import dataclass
from typing import List, Optional, Sequence

from core.config import LockerSettings
from core.errors import (
    InvalidInput,
    VerificationFailed,
    ZoneConflict,
    ZoneLocked,
    ZoneNotFound,
)
from models.access_log import AccessVia, ZoneAccessLog
from models.zone import Zone, ZoneVisibility
from models.zone_file import ZoneFile
from services.geofence_access import AccessDecision, AccessOutcome, GeofenceAccessController, ZoneMatch
from services.pin_credential import PinCredential
from services.zone_policy import ensure_owner, is_listed_for, is_owner, share_grant
from services.zone_store import ZoneStore
from utils.files import validate_file_metadata
from utils.geofence import validate_coordinates, validate_radius

logger = logging.getLogger(__name__)

SHARE_TOKEN_BYTES = 24


@dataclass(frozen=True)
class NewFile:
    name: str
    mime_type: str
    storage_path: str
    size_bytes: int = 0


@dataclass(frozen=True)
class TapResult:
    match: Optional[ZoneMatch]
    is_owner: bool = False
    retry_after_seconds: int = 0


@dataclass(frozen=True)
class Reveal:
    zone: Zone
    files: List[ZoneFile]
    via: AccessVia


class ZoneService:
    """Lifecycle operations on zones, enforcing PIN, lockout and ownership rules."""

    def __init__(
        self,
        store: ZoneStore,
        controller: GeofenceAccessController,
        credential: PinCredential,
        clock,
        settings: LockerSettings,
    ):
        self.store = store
        self.controller = controller
        self.credential = credential
        self.clock = clock
        self.settings = settings

    # --- Helpers ---

    def _get_zone(self, zone_id: str) -> Zone:
        zone = self.store.load(zone_id)
        if zone is None:
            raise ZoneNotFound(f"Zone '{zone_id}' not found.")
        return zone

    def _build_files(self, files: Sequence[NewFile]) -> List[ZoneFile]:
        built = []
        for f in files:
            kind = validate_file_metadata(
                f.name, f.mime_type, f.size_bytes, self.settings.max_file_bytes
            )
            if not f.storage_path:
                raise InvalidInput(f"storage_path is required for '{f.name}'.")
            built.append(
                ZoneFile(
                    zone_id="",
                    name=f.name.strip(),
                    mime_type=f.mime_type.lower(),
                    kind=kind,
                    size_bytes=f.size_bytes,
                    storage_path=f.storage_path,
                    created_at=self.clock.now(),
                )
            )
        return built

    @staticmethod
    def _raise_for_decision(decision: AccessDecision) -> None:
        if decision.outcome == AccessOutcome.LOCKED:
            raise ZoneLocked(decision.retry_after_seconds)
        if decision.outcome == AccessOutcome.DENIED:
            raise VerificationFailed(decision.failed_attempts, decision.attempts_remaining)

    def _new_share_token(self) -> str:
        # Global uniqueness is also enforced by the unique index on share_token
        while True:
            token = secrets.token_urlsafe(SHARE_TOKEN_BYTES)
            if self.store.find_by_share_token(token) is None:
                return token

    # --- Discovery ---

    def tap(self, owner_id: str, latitude: float, longitude: float) -> TapResult:
        match = self.controller.resolve(latitude, longitude)
        if match is None:
            return TapResult(match=None)
        return TapResult(
            match=match,
            is_owner=is_owner(match.zone, owner_id),
            retry_after_seconds=self.controller.retry_after(match.zone),
        )

    def list_my_zones(self, owner_id: str) -> List[Zone]:
        return self.store.find_by_owner(owner_id)

    def list_visible_zones(self, owner_id: str) -> List[Zone]:
        return [z for z in self.store.find_all() if is_listed_for(z, owner_id)]

    # --- Creation ---

    def create_zone(
        self,
        owner_id: str,
        latitude: float,
        longitude: float,
        pin: str,
        files: Sequence[NewFile],
        radius_meters: Optional[float] = None,
        name: Optional[str] = None,
        visibility: ZoneVisibility = ZoneVisibility.PRIVATE,
    ) -> Zone:
        validate_coordinates(latitude, longitude)
        if radius_meters is None:
            radius_meters = self.settings.default_radius_meters
        validate_radius(
            radius_meters, self.settings.min_radius_meters, self.settings.max_radius_meters
        )
        self.credential.validate_format(pin)
        if not files:
            raise InvalidInput("Please attach at least one file.")
        zone_files = self._build_files(files)

        existing = self.controller.resolve(latitude, longitude)
        if existing is not None:
            raise ZoneConflict(
                "A memory already exists at this location.", zone_id=existing.zone.id
            )

        now = self.clock.now()
        zone = Zone(
            name=name.strip() if name and name.strip() else None,
            latitude=latitude,
            longitude=longitude,
            radius_meters=float(radius_meters),
            pin_hash=self.credential.hash(pin),
            owner_id=owner_id,
            visibility=visibility,
            created_at=now,
            updated_at=now,
        )
        # Zone and its first files are written in one commit
        self.store.add_files(zone, zone_files)
        logger.info(f"[ZONES] Owner {owner_id} created zone {zone.id} with {len(zone_files)} file(s)")
        return zone

    # --- Access ---

    def unlock(self, caller_id: Optional[str], zone_id: str, pin: str) -> Reveal:
        decision = self.controller.attempt(zone_id, pin)
        self._raise_for_decision(decision)

        zone = self._get_zone(zone_id)
        self.store.log_access(
            ZoneAccessLog(
                zone_id=zone.id,
                via=AccessVia.PIN,
                accessor_id=caller_id,
                accessed_at=self.clock.now(),
            )
        )
        return Reveal(zone=zone, files=self.store.list_files(zone.id), via=AccessVia.PIN)

    def reveal_shared(self, token: str, caller_id: Optional[str] = None) -> Reveal:
        zone = self.store.find_by_share_token(token)
        grant = share_grant(zone, token)
        if grant is None:
            raise ZoneNotFound("This share link is invalid or has been revoked.")

        self.store.log_access(
            ZoneAccessLog(
                zone_id=grant.zone_id,
                via=AccessVia.SHARE,
                accessor_id=caller_id,
                accessed_at=self.clock.now(),
            )
        )
        logger.info(f"[SHARE] Zone {grant.zone_id} opened via share link")
        return Reveal(zone=zone, files=self.store.list_files(zone.id), via=AccessVia.SHARE)

    # --- Owner-only actions ---

    def append_files(self, owner_id: str, zone_id: str, files: Sequence[NewFile]) -> List[ZoneFile]:
        zone = self._get_zone(zone_id)
        ensure_owner(zone, owner_id, "add to it without the PIN")
        if not files:
            raise InvalidInput("Please attach at least one file.")
        zone_files = self._build_files(files)

        # The existing PIN hash is kept as-is
        zone.updated_at = self.clock.now()
        added = self.store.add_files(zone, zone_files)
        logger.info(f"[ZONES] Owner {owner_id} added {len(added)} file(s) to zone {zone_id}")
        return added

    def set_visibility(self, owner_id: str, zone_id: str, visibility: ZoneVisibility) -> Zone:
        zone = self._get_zone(zone_id)
        ensure_owner(zone, owner_id, "change its visibility")
        zone.visibility = ZoneVisibility(visibility)
        zone.updated_at = self.clock.now()
        return self.store.save(zone)

    def issue_share_token(self, owner_id: str, zone_id: str, rotate: bool = False) -> str:
        zone = self._get_zone(zone_id)
        ensure_owner(zone, owner_id, "share it")
        if zone.share_token and not rotate:
            return zone.share_token

        zone.share_token = self._new_share_token()
        zone.updated_at = self.clock.now()
        zone = self.store.save(zone)
        logger.info(f"[SHARE] Owner {owner_id} issued a share link for zone {zone_id}")
        return zone.share_token

    def revoke_share_token(self, owner_id: str, zone_id: str) -> Zone:
        zone = self._get_zone(zone_id)
        ensure_owner(zone, owner_id, "revoke its share link")
        zone.share_token = None
        zone.updated_at = self.clock.now()
        logger.info(f"[SHARE] Owner {owner_id} revoked the share link for zone {zone_id}")
        return self.store.save(zone)

    def replace_pin(self, owner_id: str, zone_id: str, current_pin: str, new_pin: str) -> Zone:
        zone = self._get_zone(zone_id)
        ensure_owner(zone, owner_id, "change its PIN")
        self.credential.validate_format(new_pin)

        # The current PIN goes through the same lockout-guarded path as any unlock
        decision = self.controller.attempt(zone_id, current_pin)
        self._raise_for_decision(decision)

        new_hash = self.credential.hash(new_pin)
        with self.store.atomic(zone_id) as locked_zone:
            locked_zone.pin_hash = new_hash
            locked_zone.updated_at = self.clock.now()
        logger.info(f"[ZONES] Owner {owner_id} replaced the PIN of zone {zone_id}")
        return self._get_zone(zone_id)

    def delete_zone(self, owner_id: str, zone_id: str) -> None:
        zone = self._get_zone(zone_id)
        ensure_owner(zone, owner_id, "delete it")
        self.store.delete(zone_id)
        logger.info(f"[ZONES] Owner {owner_id} deleted zone {zone_id}")

    def access_log(self, owner_id: str, zone_id: str, limit: int = 50) -> List[ZoneAccessLog]:
        zone = self._get_zone(zone_id)
        ensure_owner(zone, owner_id, "view its access history")
        return self.store.list_access_log(zone_id, limit=limit)
