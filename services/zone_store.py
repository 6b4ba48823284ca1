from contextlib import AbstractContextManager
from typing import List, Optional, Protocol

from models.access_log import ZoneAccessLog
from models.zone import Zone
from models.zone_file import ZoneFile


class ZoneStore(Protocol):
    """
    Persistence contract the locker services depend on.

    `atomic(zone_id)` must hold the zone exclusively for the duration of the
    block and persist every change made to it all-or-nothing on exit. It
    raises ZoneNotFound for an unknown id. Any backend failure surfaces as
    StorageFailure.
    """

    def load(self, zone_id: str) -> Optional[Zone]: ...

    def save(self, zone: Zone) -> Zone: ...

    def find_all(self) -> List[Zone]: ...

    def find_by_share_token(self, token: str) -> Optional[Zone]: ...

    def find_by_owner(self, owner_id: str) -> List[Zone]: ...

    def delete(self, zone_id: str) -> None: ...

    def atomic(self, zone_id: str) -> AbstractContextManager[Zone]: ...

    def add_files(self, zone: Zone, files: List[ZoneFile]) -> List[ZoneFile]:
        """Persist the files and the zone itself (new or updated) together."""
        ...

    def list_files(self, zone_id: str) -> List[ZoneFile]: ...

    def log_access(self, entry: ZoneAccessLog) -> None: ...

    def list_access_log(self, zone_id: str, limit: int = 50) -> List[ZoneAccessLog]: ...
