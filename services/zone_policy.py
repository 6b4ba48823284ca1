import hmac
from dataclasses import dataclass
from typing import Optional

from core.errors import Unauthorized
from models.zone import Zone


# Read access obtained by holding a share link. Deliberately a different type
# from a PIN decision: it never unlocks owner-only actions.
@dataclass(frozen=True)
class ShareGrant:
    zone_id: str
    token: str


def is_owner(zone: Zone, owner_id: Optional[str]) -> bool:
    return bool(owner_id) and zone.owner_id == owner_id


def ensure_owner(zone: Zone, owner_id: Optional[str], action: str) -> None:
    if not is_owner(zone, owner_id):
        raise Unauthorized(f"Only the owner of this memory can {action}.")


def share_grant(zone: Optional[Zone], token: Optional[str]) -> Optional[ShareGrant]:
    """A grant if token is this zone's active share token, else None."""
    if zone is None or not token or not zone.share_token:
        return None
    if not hmac.compare_digest(zone.share_token.encode("utf-8"), token.encode("utf-8")):
        return None
    return ShareGrant(zone_id=zone.id, token=token)


def is_listed_for(zone: Zone, owner_id: Optional[str]) -> bool:
    """
    Whether the zone appears in a caller's zone listings.

    Private zones are listed only for their owner. This has no effect on
    tap matching: a private zone still captures taps inside its fence and
    still accepts PIN attempts from anyone standing there.
    """
    if zone.is_public:
        return True
    return is_owner(zone, owner_id)
