"""SQLite-backed implementation of every storage contract."""

from __future__ import annotations

import copy
import sqlite3
from collections import defaultdict
from contextlib import closing, contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence
from uuid import uuid4

from gym_booking.domain.models import AuditAction, AuditEvent, Booking, GymUser, Slot, SlotId
from gym_booking.repository.base import (
    AlreadyBookedError,
    AuditLog,
    BookingLedger,
    BookingNotFoundError,
    CapacityExceededError,
    NotBookedError,
    SlotNotFoundError,
    SlotStore,
    StoreSession,
    UnitOfWork,
    UserDirectory,
)
from gym_booking.utils.config import Settings, get_settings
from gym_booking.utils.logger import get_logger


logger = get_logger(__name__)


class DataRepository(SlotStore, BookingLedger, AuditLog, UserDirectory, UnitOfWork):
    """Encapsulates SQLite access so business logic stays storage-agnostic.

    Outside a session every mutating call runs in its own ``BEGIN IMMEDIATE``
    transaction. Inside :meth:`session` all calls share one connection and one
    ``BEGIN IMMEDIATE`` transaction, which holds the database write lock from
    the first read to the commit. Checks made in a session therefore hold
    against writers in other processes sharing the database file.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._bound: Optional[sqlite3.Connection] = None

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path, timeout=30.0, isolation_level=None)
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        if self._bound is not None:
            yield self._bound
            return
        with closing(self._connect()) as conn:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK;")
                raise
            conn.execute("COMMIT;")

    @contextmanager
    def _reader(self) -> Iterator[sqlite3.Connection]:
        if self._bound is not None:
            yield self._bound
            return
        with closing(self._connect()) as conn:
            yield conn

    @contextmanager
    def session(self) -> Iterator[StoreSession]:
        with self._transaction() as conn:
            bound = copy.copy(self)
            bound._bound = conn
            yield StoreSession(slots=bound, ledger=bound, audit_log=bound)

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._transaction() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Slots (
                        slot_date TEXT NOT NULL,
                        hour INTEGER NOT NULL CHECK (hour BETWEEN 0 AND 23),
                        capacity INTEGER NOT NULL CHECK (capacity > 0),
                        occupancy INTEGER NOT NULL DEFAULT 0,
                        PRIMARY KEY (slot_date, hour),
                        CHECK (occupancy >= 0 AND occupancy <= capacity)
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS SlotBookers (
                        slot_date TEXT NOT NULL,
                        hour INTEGER NOT NULL,
                        user_id TEXT NOT NULL,
                        PRIMARY KEY (slot_date, hour, user_id),
                        FOREIGN KEY (slot_date, hour) REFERENCES Slots(slot_date, hour)
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Bookings (
                        id TEXT PRIMARY KEY,
                        user_id TEXT NOT NULL,
                        slot_date TEXT NOT NULL,
                        hour INTEGER NOT NULL,
                        created_at TEXT NOT NULL,
                        FOREIGN KEY (slot_date, hour) REFERENCES Slots(slot_date, hour)
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Users (
                        id TEXT PRIMARY KEY,
                        email TEXT NOT NULL,
                        name TEXT NOT NULL,
                        gender TEXT NOT NULL,
                        department TEXT NOT NULL
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS AuditLogs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        actor_id TEXT NOT NULL,
                        action TEXT NOT NULL,
                        detail TEXT NOT NULL,
                        timestamp TEXT NOT NULL
                    );
                    """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_bookings_user ON Bookings(user_id);"
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON AuditLogs(timestamp);"
                )
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    # ------------------------------------------------------------------ slots

    def add_slots(self, slots: Iterable[Slot]) -> int:
        added = 0
        with self._transaction() as conn:
            for slot in slots:
                if len(slot.bookers) > slot.capacity:
                    raise ValueError(f"slot {slot.slot_id} has more bookers than capacity")
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO Slots (slot_date, hour, capacity, occupancy)
                    VALUES (?, ?, ?, ?);
                    """,
                    (slot.date.isoformat(), slot.hour, slot.capacity, slot.occupancy),
                )
                if cursor.rowcount == 0:
                    continue
                conn.executemany(
                    "INSERT INTO SlotBookers (slot_date, hour, user_id) VALUES (?, ?, ?);",
                    [(slot.date.isoformat(), slot.hour, user_id) for user_id in slot.bookers],
                )
                added += 1
        return added

    @staticmethod
    def _load_bookers(
        conn: sqlite3.Connection,
        date_from: str,
        date_to: str,
    ) -> dict[tuple[str, int], set[str]]:
        rows = conn.execute(
            """
            SELECT slot_date, hour, user_id
            FROM SlotBookers
            WHERE slot_date BETWEEN ? AND ?;
            """,
            (date_from, date_to),
        ).fetchall()
        bookers: dict[tuple[str, int], set[str]] = defaultdict(set)
        for row in rows:
            bookers[(str(row["slot_date"]), int(row["hour"]))].add(str(row["user_id"]))
        return bookers

    def list_slots(self, date_from: date, date_to: date) -> list[Slot]:
        start, end = date_from.isoformat(), date_to.isoformat()
        with self._reader() as conn:
            rows = conn.execute(
                """
                SELECT slot_date, hour, capacity
                FROM Slots
                WHERE slot_date BETWEEN ? AND ?
                ORDER BY slot_date ASC, hour ASC;
                """,
                (start, end),
            ).fetchall()
            bookers = self._load_bookers(conn, start, end)
        return [
            Slot(
                slot_id=SlotId(date=date.fromisoformat(str(row["slot_date"])), hour=int(row["hour"])),
                capacity=int(row["capacity"]),
                bookers=frozenset(bookers.get((str(row["slot_date"]), int(row["hour"])), ())),
            )
            for row in rows
        ]

    @staticmethod
    def _fetch_slot(conn: sqlite3.Connection, slot_id: SlotId) -> Optional[Slot]:
        row = conn.execute(
            "SELECT capacity FROM Slots WHERE slot_date = ? AND hour = ?;",
            (slot_id.date.isoformat(), slot_id.hour),
        ).fetchone()
        if row is None:
            return None
        booker_rows = conn.execute(
            "SELECT user_id FROM SlotBookers WHERE slot_date = ? AND hour = ?;",
            (slot_id.date.isoformat(), slot_id.hour),
        ).fetchall()
        return Slot(
            slot_id=slot_id,
            capacity=int(row["capacity"]),
            bookers=frozenset(str(item["user_id"]) for item in booker_rows),
        )

    def get_slot(self, slot_id: SlotId) -> Optional[Slot]:
        with self._reader() as conn:
            return self._fetch_slot(conn, slot_id)

    def reserve(self, slot_id: SlotId, user_id: str) -> Slot:
        with self._transaction() as conn:
            slot = self._fetch_slot(conn, slot_id)
            if slot is None:
                raise SlotNotFoundError(f"Slot {slot_id} does not exist")
            if user_id in slot.bookers:
                raise AlreadyBookedError(f"User {user_id} already booked slot {slot_id}")
            if slot.is_full:
                raise CapacityExceededError(f"Slot {slot_id} is full")
            conn.execute(
                "INSERT INTO SlotBookers (slot_date, hour, user_id) VALUES (?, ?, ?);",
                (slot_id.date.isoformat(), slot_id.hour, user_id),
            )
            conn.execute(
                """
                UPDATE Slots SET occupancy = occupancy + 1
                WHERE slot_date = ? AND hour = ?;
                """,
                (slot_id.date.isoformat(), slot_id.hour),
            )
            return Slot(
                slot_id=slot_id,
                capacity=slot.capacity,
                bookers=slot.bookers | {user_id},
            )

    def release(self, slot_id: SlotId, user_id: str) -> Slot:
        with self._transaction() as conn:
            slot = self._fetch_slot(conn, slot_id)
            if slot is None:
                raise SlotNotFoundError(f"Slot {slot_id} does not exist")
            if user_id not in slot.bookers:
                raise NotBookedError(f"User {user_id} is not booked into slot {slot_id}")
            conn.execute(
                "DELETE FROM SlotBookers WHERE slot_date = ? AND hour = ? AND user_id = ?;",
                (slot_id.date.isoformat(), slot_id.hour, user_id),
            )
            conn.execute(
                """
                UPDATE Slots SET occupancy = occupancy - 1
                WHERE slot_date = ? AND hour = ?;
                """,
                (slot_id.date.isoformat(), slot_id.hour),
            )
            return Slot(
                slot_id=slot_id,
                capacity=slot.capacity,
                bookers=slot.bookers - {user_id},
            )

    def slot_occupancy_column(self, slot_id: SlotId) -> Optional[int]:
        """Return the stored occupancy counter for diagnostics and tests."""
        with self._reader() as conn:
            row = conn.execute(
                "SELECT occupancy FROM Slots WHERE slot_date = ? AND hour = ?;",
                (slot_id.date.isoformat(), slot_id.hour),
            ).fetchone()
        if row is None:
            return None
        return int(row["occupancy"])

    # --------------------------------------------------------------- bookings

    @staticmethod
    def _row_to_booking(row: sqlite3.Row) -> Booking:
        return Booking(
            booking_id=str(row["id"]),
            user_id=str(row["user_id"]),
            slot_id=SlotId(date=date.fromisoformat(str(row["slot_date"])), hour=int(row["hour"])),
            created_at=datetime.fromisoformat(str(row["created_at"])),
        )

    def record_booking(self, user_id: str, slot_id: SlotId, timestamp: datetime) -> str:
        booking_id = f"booking-{uuid4().hex}"
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO Bookings (id, user_id, slot_date, hour, created_at)
                VALUES (?, ?, ?, ?, ?);
                """,
                (booking_id, user_id, slot_id.date.isoformat(), slot_id.hour, timestamp.isoformat()),
            )
        return booking_id

    def remove_booking(self, booking_id: str) -> Booking:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id, user_id, slot_date, hour, created_at FROM Bookings WHERE id = ?;",
                (booking_id,),
            ).fetchone()
            if row is None:
                raise BookingNotFoundError(f"Booking {booking_id} does not exist")
            conn.execute("DELETE FROM Bookings WHERE id = ?;", (booking_id,))
        return self._row_to_booking(row)

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._reader() as conn:
            row = conn.execute(
                "SELECT id, user_id, slot_date, hour, created_at FROM Bookings WHERE id = ?;",
                (booking_id,),
            ).fetchone()
        return self._row_to_booking(row) if row is not None else None

    def bookings_for_user(self, user_id: str) -> list[Booking]:
        with self._reader() as conn:
            rows = conn.execute(
                """
                SELECT id, user_id, slot_date, hour, created_at
                FROM Bookings
                WHERE user_id = ?;
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_booking(row) for row in rows]

    def list_bookings(self) -> list[Booking]:
        with self._reader() as conn:
            rows = conn.execute(
                "SELECT id, user_id, slot_date, hour, created_at FROM Bookings;"
            ).fetchall()
        return [self._row_to_booking(row) for row in rows]

    # ------------------------------------------------------------------ audit

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> AuditEvent:
        return AuditEvent(
            event_id=f"log-{int(row['id'])}",
            actor_id=str(row["actor_id"]),
            action=AuditAction(str(row["action"])),
            detail=str(row["detail"]),
            timestamp=datetime.fromisoformat(str(row["timestamp"])),
        )

    def append(
        self,
        actor_id: str,
        action: AuditAction,
        detail: str,
        timestamp: datetime,
    ) -> AuditEvent:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO AuditLogs (actor_id, action, detail, timestamp)
                VALUES (?, ?, ?, ?);
                """,
                (actor_id, action.value, detail, timestamp.isoformat()),
            )
            event_id = int(cursor.lastrowid)
        return AuditEvent(
            event_id=f"log-{event_id}",
            actor_id=actor_id,
            action=action,
            detail=detail,
            timestamp=timestamp,
        )

    def list_events(
        self,
        *,
        offset: int = 0,
        limit: Optional[int] = None,
        action: Optional[AuditAction] = None,
    ) -> list[AuditEvent]:
        clauses = ""
        params: list[object] = []
        if action is not None:
            clauses = "WHERE action = ?"
            params.append(action.value)
        params.extend([-1 if limit is None else limit, offset])
        with self._reader() as conn:
            rows = conn.execute(
                f"""
                SELECT id, actor_id, action, detail, timestamp
                FROM AuditLogs
                {clauses}
                ORDER BY id DESC
                LIMIT ? OFFSET ?;
                """,
                tuple(params),
            ).fetchall()
        return [self._row_to_event(row) for row in rows]

    def count_events(self, action: Optional[AuditAction] = None) -> int:
        with self._reader() as conn:
            if action is None:
                row = conn.execute("SELECT COUNT(*) AS count FROM AuditLogs;").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS count FROM AuditLogs WHERE action = ?;",
                    (action.value,),
                ).fetchone()
        return int(row["count"])

    # ------------------------------------------------------------------ users

    def upsert_users(self, users: Sequence[GymUser]) -> None:
        if not users:
            return
        with self._transaction() as conn:
            conn.executemany(
                """
                INSERT INTO Users (id, email, name, gender, department)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    email = excluded.email,
                    name = excluded.name,
                    gender = excluded.gender,
                    department = excluded.department;
                """,
                [
                    (user.user_id, user.email, user.name, user.gender, user.department)
                    for user in users
                ],
            )

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> GymUser:
        return GymUser(
            user_id=str(row["id"]),
            email=str(row["email"]),
            name=str(row["name"]),
            gender=str(row["gender"]),
            department=str(row["department"]),
        )

    def get_user(self, user_id: str) -> Optional[GymUser]:
        with self._reader() as conn:
            row = conn.execute(
                "SELECT id, email, name, gender, department FROM Users WHERE id = ?;",
                (user_id,),
            ).fetchone()
        return self._row_to_user(row) if row is not None else None

    def list_users(self) -> list[GymUser]:
        with self._reader() as conn:
            rows = conn.execute(
                "SELECT id, email, name, gender, department FROM Users ORDER BY id ASC;"
            ).fetchall()
        return [self._row_to_user(row) for row in rows]
