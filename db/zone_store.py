import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from core.errors import StorageFailure, ZoneNotFound
from models.access_log import ZoneAccessLog
from models.zone import Zone
from models.zone_file import ZoneFile

logger = logging.getLogger(__name__)


# SQLModel-backed zone store bound to one request session
class SqlZoneStore:
    def __init__(self, session: Session):
        self.session = session

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error(f"[ZONES] Storage error while trying to {action}: {e}")
            raise StorageFailure(f"Could not {action}.") from e

    def load(self, zone_id: str) -> Optional[Zone]:
        with self._guard("load zone"):
            return self.session.get(Zone, zone_id)

    def save(self, zone: Zone) -> Zone:
        with self._guard("save zone"):
            self.session.add(zone)
            self.session.commit()
            self.session.refresh(zone)
            return zone

    def find_all(self) -> List[Zone]:
        with self._guard("list zones"):
            return list(
                self.session.exec(select(Zone).order_by(Zone.created_at, Zone.id)).all()
            )

    def find_by_share_token(self, token: str) -> Optional[Zone]:
        if not token:
            return None
        with self._guard("look up share token"):
            return self.session.exec(
                select(Zone).where(Zone.share_token == token)
            ).first()

    def find_by_owner(self, owner_id: str) -> List[Zone]:
        with self._guard("list owner zones"):
            return list(
                self.session.exec(
                    select(Zone)
                    .where(Zone.owner_id == owner_id)
                    .order_by(Zone.created_at.desc())
                ).all()
            )

    def delete(self, zone_id: str) -> None:
        with self._guard("delete zone"):
            # Children first so the FK constraints hold on Postgres
            for entry in self.session.exec(
                select(ZoneAccessLog).where(ZoneAccessLog.zone_id == zone_id)
            ).all():
                self.session.delete(entry)
            for f in self.session.exec(
                select(ZoneFile).where(ZoneFile.zone_id == zone_id)
            ).all():
                self.session.delete(f)
            self.session.flush()

            zone = self.session.get(Zone, zone_id)
            if zone is not None:
                self.session.delete(zone)
            self.session.commit()

    def _begin_immediate(self) -> None:
        conn = self.session.connection()
        if conn.dialect.name != "sqlite":
            return
        # pysqlite opens no transaction for a SELECT, so take the write lock first
        if not conn.connection.dbapi_connection.in_transaction:
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    @contextmanager
    def atomic(self, zone_id: str) -> Iterator[Zone]:
        """
        Row-locked read-modify-write of a single zone.

        The zone is selected FOR UPDATE, handed to the block, and committed on
        a clean exit. Any exception rolls the whole change back. SQLite has no
        row locks, so there the database write lock is taken before the read.
        """
        with self._guard("lock zone"):
            self._begin_immediate()
            zone = self.session.exec(
                select(Zone)
                .where(Zone.id == zone_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).first()

        if zone is None:
            self.session.rollback()
            raise ZoneNotFound(f"Zone '{zone_id}' not found.")

        try:
            yield zone
        except BaseException:
            self.session.rollback()
            raise

        with self._guard("update zone"):
            self.session.add(zone)
            self.session.commit()
            self.session.refresh(zone)

    def add_files(self, zone: Zone, files: List[ZoneFile]) -> List[ZoneFile]:
        with self._guard("attach files"):
            for f in files:
                f.zone_id = zone.id
                self.session.add(f)
            self.session.add(zone)
            self.session.commit()
            for f in files:
                self.session.refresh(f)
            self.session.refresh(zone)
            return files

    def list_files(self, zone_id: str) -> List[ZoneFile]:
        with self._guard("list files"):
            return list(
                self.session.exec(
                    select(ZoneFile)
                    .where(ZoneFile.zone_id == zone_id)
                    .order_by(ZoneFile.created_at, ZoneFile.id)
                ).all()
            )

    def log_access(self, entry: ZoneAccessLog) -> None:
        with self._guard("record access"):
            self.session.add(entry)
            self.session.commit()

    def list_access_log(self, zone_id: str, limit: int = 50) -> List[ZoneAccessLog]:
        with self._guard("read access log"):
            return list(
                self.session.exec(
                    select(ZoneAccessLog)
                    .where(ZoneAccessLog.zone_id == zone_id)
                    .order_by(ZoneAccessLog.accessed_at.desc(), ZoneAccessLog.id.desc())
                    .limit(limit)
                ).all()
            )
