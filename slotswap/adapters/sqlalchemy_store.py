"""
SQLAlchemy-backed store for slots and swap requests.

Each unit of work runs inside ``engine.begin()``. Reads taken for a state
change use ``SELECT ... FOR UPDATE`` and status writes are guarded with
``WHERE status = :expected`` plus a rowcount check, so a concurrent writer
surfaces as ``ConflictError`` instead of a lost update. SQLite has no row
locks; there every transaction starts with ``BEGIN IMMEDIATE`` to take the
database write lock up front.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, List, Mapping, Optional

import pendulum
import sqlalchemy
from pendulum import DateTime
from sqlalchemy import event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..domain.exceptions import ConflictError, SlotSwapError, SystemFailureError, ValidationError
from ..domain.models import Slot, SlotStatus, SwapRequest, SwapStatus

logger = logging.getLogger(__name__)

metadata = sqlalchemy.MetaData()

slots = sqlalchemy.Table(
    "slots",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String(32), primary_key=True),
    sqlalchemy.Column("title", sqlalchemy.String, nullable=False),
    sqlalchemy.Column("start_time", sqlalchemy.DateTime, nullable=False),
    sqlalchemy.Column("end_time", sqlalchemy.DateTime, nullable=False),
    sqlalchemy.Column("status", sqlalchemy.String(16), nullable=False, default=SlotStatus.BUSY.value),
    sqlalchemy.Column("owner_id", sqlalchemy.String, nullable=False, index=True),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime),
    sqlalchemy.Column("updated_at", sqlalchemy.DateTime),
)

# Slot references are plain columns: a slot may be removed out-of-band and
# the engine reports that as a conflict rather than relying on the schema.
swap_requests = sqlalchemy.Table(
    "swap_requests",
    metadata,
    sqlalchemy.Column("id", sqlalchemy.String(32), primary_key=True),
    sqlalchemy.Column("requester_slot_id", sqlalchemy.String(32), nullable=False),
    sqlalchemy.Column("target_slot_id", sqlalchemy.String(32), nullable=False),
    sqlalchemy.Column("requester_id", sqlalchemy.String, nullable=False, index=True),
    sqlalchemy.Column("target_user_id", sqlalchemy.String, nullable=False, index=True),
    sqlalchemy.Column("status", sqlalchemy.String(16), nullable=False, default=SwapStatus.PENDING.value),
    sqlalchemy.Column("created_at", sqlalchemy.DateTime, index=True),
    sqlalchemy.Column("updated_at", sqlalchemy.DateTime),
)


def _to_db(value: Optional[DateTime]) -> Optional[datetime]:
    """Store instants as naive UTC."""
    if value is None:
        return None
    return pendulum.instance(value).in_timezone("UTC").naive()


def _from_db(value: Optional[datetime]) -> Optional[DateTime]:
    if value is None:
        return None
    return pendulum.instance(value, tz="UTC")


def _slot_from_row(row: Mapping[str, Any]) -> Slot:
    return Slot(
        id=row["id"],
        title=row["title"],
        start=_from_db(row["start_time"]),
        end=_from_db(row["end_time"]),
        owner_id=row["owner_id"],
        status=SlotStatus(row["status"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
    )


def _slot_values(slot: Slot) -> dict:
    return {
        "title": slot.title,
        "start_time": _to_db(slot.start),
        "end_time": _to_db(slot.end),
        "status": slot.status.value,
        "owner_id": slot.owner_id,
        "updated_at": _to_db(slot.updated_at),
    }


def _swap_from_row(row: Mapping[str, Any]) -> SwapRequest:
    return SwapRequest(
        id=row["id"],
        requester_slot_id=row["requester_slot_id"],
        target_slot_id=row["target_slot_id"],
        requester_id=row["requester_id"],
        target_user_id=row["target_user_id"],
        status=SwapStatus(row["status"]),
        created_at=_from_db(row["created_at"]),
        updated_at=_from_db(row["updated_at"]),
    )


class SqlAlchemyTransaction:
    """A unit of work bound to one connection and one database transaction."""

    def __init__(self, connection: Connection) -> None:
        self._conn = connection

    def get_slot(self, slot_id: str, *, for_update: bool = True) -> Optional[Slot]:
        query = slots.select().where(slots.c.id == slot_id)
        if for_update:
            query = query.with_for_update()
        row = self._conn.execute(query).mappings().first()
        return _slot_from_row(row) if row else None

    def find_slots(
        self,
        *,
        owner_id: Optional[str] = None,
        exclude_owner_id: Optional[str] = None,
        status: Optional[SlotStatus] = None,
    ) -> List[Slot]:
        query = slots.select()
        if owner_id is not None:
            query = query.where(slots.c.owner_id == owner_id)
        if exclude_owner_id is not None:
            query = query.where(slots.c.owner_id != exclude_owner_id)
        if status is not None:
            query = query.where(slots.c.status == status.value)
        query = query.order_by(slots.c.start_time.asc(), slots.c.id.asc())
        return [_slot_from_row(row) for row in self._conn.execute(query).mappings()]

    def add_slot(self, slot: Slot) -> None:
        values = _slot_values(slot)
        values.update(id=slot.id, created_at=_to_db(slot.created_at))
        try:
            self._conn.execute(slots.insert().values(**values))
        except IntegrityError as exc:
            raise ValidationError(f"Slot {slot.id} already exists") from exc

    def replace_slot(self, slot: Slot, *, expected_status: SlotStatus) -> None:
        result = self._conn.execute(
            slots.update()
            .where(slots.c.id == slot.id, slots.c.status == expected_status.value)
            .values(**_slot_values(slot))
        )
        self._expect_one(result.rowcount, "Slot", slot.id, expected_status.value)

    def delete_slot(self, slot_id: str, *, expected_status: SlotStatus) -> None:
        result = self._conn.execute(
            slots.delete().where(slots.c.id == slot_id, slots.c.status == expected_status.value)
        )
        self._expect_one(result.rowcount, "Slot", slot_id, expected_status.value)

    def get_swap(self, swap_id: str, *, for_update: bool = True) -> Optional[SwapRequest]:
        query = swap_requests.select().where(swap_requests.c.id == swap_id)
        if for_update:
            query = query.with_for_update()
        row = self._conn.execute(query).mappings().first()
        return _swap_from_row(row) if row else None

    def find_swaps(
        self,
        *,
        requester_id: Optional[str] = None,
        target_user_id: Optional[str] = None,
        status: Optional[SwapStatus] = None,
    ) -> List[SwapRequest]:
        query = swap_requests.select()
        if requester_id is not None:
            query = query.where(swap_requests.c.requester_id == requester_id)
        if target_user_id is not None:
            query = query.where(swap_requests.c.target_user_id == target_user_id)
        if status is not None:
            query = query.where(swap_requests.c.status == status.value)
        query = query.order_by(swap_requests.c.created_at.desc(), swap_requests.c.id.desc())
        return [_swap_from_row(row) for row in self._conn.execute(query).mappings()]

    def add_swap(self, swap: SwapRequest) -> None:
        try:
            self._conn.execute(
                swap_requests.insert().values(
                    id=swap.id,
                    requester_slot_id=swap.requester_slot_id,
                    target_slot_id=swap.target_slot_id,
                    requester_id=swap.requester_id,
                    target_user_id=swap.target_user_id,
                    status=swap.status.value,
                    created_at=_to_db(swap.created_at),
                    updated_at=_to_db(swap.updated_at),
                )
            )
        except IntegrityError as exc:
            raise ValidationError(f"Swap request {swap.id} already exists") from exc

    def replace_swap(self, swap: SwapRequest, *, expected_status: SwapStatus) -> None:
        result = self._conn.execute(
            swap_requests.update()
            .where(swap_requests.c.id == swap.id, swap_requests.c.status == expected_status.value)
            .values(status=swap.status.value, updated_at=_to_db(swap.updated_at))
        )
        self._expect_one(result.rowcount, "Swap request", swap.id, expected_status.value)

    @staticmethod
    def _expect_one(rowcount: int, kind: str, record_id: str, expected: str) -> None:
        if rowcount != 1:
            logger.debug("Compare-and-set failed for %s %s (expected %s)", kind, record_id, expected)
            raise ConflictError(f"{kind} {record_id} changed concurrently")


class SqlAlchemySwapStore:
    """
    Relational implementation of ``SwapStoreProtocol``.

    Args:
        url: SQLAlchemy database URL, e.g. ``sqlite:///slotswap.db``
        engine: Optional pre-built engine (takes precedence over ``url``)
    """

    def __init__(self, url: str = "sqlite:///slotswap.db", engine: Optional[Engine] = None):
        self.engine = engine or sqlalchemy.create_engine(url)
        if self.engine.dialect.name == "sqlite":
            self._use_immediate_transactions(self.engine)

    @staticmethod
    def _use_immediate_transactions(engine: Engine) -> None:
        # pysqlite's own BEGIN handling is disabled so ours is the only one.
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    def create_schema(self) -> None:
        """Create the tables if they do not exist yet."""
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise SystemFailureError(f"Could not create database schema: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[SqlAlchemyTransaction]:
        try:
            with self.engine.begin() as connection:
                yield SqlAlchemyTransaction(connection)
        except SlotSwapError:
            raise
        except SQLAlchemyError as exc:
            logger.error("Store transaction failed: %s", exc)
            raise SystemFailureError(f"Slot store unavailable: {exc}") from exc

    def dispose(self) -> None:
        self.engine.dispose()
