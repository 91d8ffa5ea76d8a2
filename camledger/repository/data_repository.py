"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from camledger.domain.constraints import validate_status_transition
from camledger.domain.errors import DuplicatePeriodError
from camledger.domain.models import (
    Building,
    ExpenseEvent,
    ExpenseEventType,
    ExpenseFilter,
    ExpenseRecord,
    ExpenseStatus,
    UnitRecord,
)
from camledger.utils.config import Settings, get_settings
from camledger.utils.logger import get_logger


logger = get_logger(__name__)

ACTIVE_CONTRACT_STATUS = "ACTIVE"

_EXPENSE_COLUMNS = """
    id,
    building_id,
    building_name,
    period_start,
    period_end,
    total_amount,
    generator_share,
    transformer_share,
    other_cam_share,
    other_cam_costs,
    total_vacant_area,
    total_unallocated_area,
    total_leasable_area,
    total_cam_costs,
    occupied_area,
    occupied_units_count,
    vacant_units_count,
    description,
    status,
    date_recorded
"""


@dataclass(frozen=True)
class ExpenseDraft:
    """Values of a new expense record before the database assigns an id."""

    building_id: int
    building_name: str
    period_start: date
    period_end: date
    total_amount: float
    generator_share: float
    transformer_share: float
    other_cam_share: float
    other_cam_costs: float
    total_vacant_area: float
    total_unallocated_area: float
    total_leasable_area: float
    total_cam_costs: float
    occupied_area: float
    occupied_units_count: int
    vacant_units_count: int
    description: str


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_expense(row: sqlite3.Row) -> ExpenseRecord:
    return ExpenseRecord(
        expense_id=int(row["id"]),
        building_id=int(row["building_id"]),
        building_name=str(row["building_name"]),
        period_start=date.fromisoformat(str(row["period_start"])),
        period_end=date.fromisoformat(str(row["period_end"])),
        total_amount=float(row["total_amount"]),
        generator_share=float(row["generator_share"]),
        transformer_share=float(row["transformer_share"]),
        other_cam_share=float(row["other_cam_share"]),
        other_cam_costs=float(row["other_cam_costs"]),
        total_vacant_area=float(row["total_vacant_area"]),
        total_unallocated_area=float(row["total_unallocated_area"]),
        total_leasable_area=float(row["total_leasable_area"]),
        total_cam_costs=float(row["total_cam_costs"]),
        occupied_area=float(row["occupied_area"]),
        occupied_units_count=int(row["occupied_units_count"]),
        vacant_units_count=int(row["vacant_units_count"]),
        description=str(row["description"]),
        status=ExpenseStatus(str(row["status"])),
        date_recorded=datetime.fromisoformat(str(row["date_recorded"])),
    )


def _row_to_event(row: sqlite3.Row) -> ExpenseEvent:
    return ExpenseEvent(
        event_id=int(row["id"]),
        expense_id=int(row["expense_id"]),
        event_type=ExpenseEventType(str(row["event_type"])),
        old_status=ExpenseStatus(row["old_status"]) if row["old_status"] else None,
        new_status=ExpenseStatus(row["new_status"]) if row["new_status"] else None,
        recorded_at=datetime.fromisoformat(str(row["recorded_at"])),
        detail=str(row["detail"] or ""),
    )


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self, autocommit: bool = False) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.database_timeout_seconds,
            isolation_level=None if autocommit else "",
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _write_transaction(self) -> Iterator[sqlite3.Connection]:
        """Hold the database write lock from the first read to the commit."""
        conn = self._connect(autocommit=True)
        try:
            conn.execute("BEGIN IMMEDIATE;")
            try:
                yield conn
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK;")
                raise
            conn.execute("COMMIT;")
        finally:
            conn.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Buildings (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        total_leasable_area REAL NOT NULL DEFAULT 0,
                        generator_fee REAL NOT NULL DEFAULT 0 CHECK (generator_fee >= 0),
                        transformer_fee REAL NOT NULL DEFAULT 0 CHECK (transformer_fee >= 0),
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Units (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        building_id INTEGER NOT NULL,
                        unit_number TEXT NOT NULL,
                        unit_space REAL NOT NULL CHECK (unit_space >= 0),
                        FOREIGN KEY (building_id) REFERENCES Buildings(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Contracts (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        unit_id INTEGER NOT NULL,
                        tenant_name TEXT,
                        status TEXT NOT NULL DEFAULT 'ACTIVE',
                        FOREIGN KEY (unit_id) REFERENCES Units(id)
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ExpenseRecords (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        building_id INTEGER NOT NULL,
                        building_name TEXT NOT NULL,
                        period_start TEXT NOT NULL,
                        period_end TEXT NOT NULL,
                        total_amount REAL NOT NULL,
                        generator_share REAL NOT NULL,
                        transformer_share REAL NOT NULL,
                        other_cam_share REAL NOT NULL,
                        other_cam_costs REAL NOT NULL,
                        total_vacant_area REAL NOT NULL,
                        total_unallocated_area REAL NOT NULL,
                        total_leasable_area REAL NOT NULL,
                        total_cam_costs REAL NOT NULL,
                        occupied_area REAL NOT NULL,
                        occupied_units_count INTEGER NOT NULL,
                        vacant_units_count INTEGER NOT NULL,
                        description TEXT NOT NULL DEFAULT '',
                        status TEXT NOT NULL DEFAULT 'PENDING'
                            CHECK (status IN ('PENDING', 'APPROVED', 'PAID', 'CANCELLED')),
                        date_recorded TEXT NOT NULL,
                        CHECK (period_start < period_end),
                        UNIQUE (building_id, period_start, period_end)
                    );
                    """
                )

                # Events outlive the records they describe, so no foreign key.
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS ExpenseEvents (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        expense_id INTEGER NOT NULL,
                        event_type TEXT NOT NULL,
                        old_status TEXT,
                        new_status TEXT,
                        recorded_at TEXT NOT NULL,
                        detail TEXT
                    );
                    """
                )

                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_units_building
                    ON Units(building_id);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_contracts_unit_status
                    ON Contracts(unit_id, status);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_expense_status
                    ON ExpenseRecords(status);
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_expense_events_expense
                    ON ExpenseEvents(expense_id);
                    """
                )
                conn.commit()
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self) -> int:
        """Seed a demo building directory only when no buildings exist."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) AS count FROM Buildings;")
                if int(cursor.fetchone()["count"]) > 0:
                    logger.info("Building directory already present; skipping seed")
                    return 0

                buildings = [
                    ("Junction City Mall", 10000.0, 300000.0, 200000.0),
                    ("Riverside Plaza", 5000.0, 450000.0, 250000.0),
                ]
                building_ids = []
                for building in buildings:
                    cursor.execute(
                        """
                        INSERT INTO Buildings (
                            name, total_leasable_area, generator_fee, transformer_fee
                        )
                        VALUES (?, ?, ?, ?);
                        """,
                        building,
                    )
                    building_ids.append(int(cursor.lastrowid))

                # (building index, unit number, area, tenant or None when vacant)
                units = [
                    (0, "G-01", 1500.0, "Golden Bakery"),
                    (0, "G-02", 2500.0, "City Mart"),
                    (0, "1-01", 3000.0, None),
                    (0, "1-02", 2000.0, "Sky Fitness"),
                    (1, "A-01", 1000.0, "Lotus Pharmacy"),
                    (1, "A-02", 1800.0, None),
                    (1, "A-03", 1200.0, None),
                ]
                for building_index, unit_number, unit_space, tenant_name in units:
                    cursor.execute(
                        """
                        INSERT INTO Units (building_id, unit_number, unit_space)
                        VALUES (?, ?, ?);
                        """,
                        (building_ids[building_index], unit_number, unit_space),
                    )
                    if tenant_name is not None:
                        cursor.execute(
                            """
                            INSERT INTO Contracts (unit_id, tenant_name, status)
                            VALUES (?, ?, ?);
                            """,
                            (int(cursor.lastrowid), tenant_name, ACTIVE_CONTRACT_STATUS),
                        )
                conn.commit()
            logger.info(
                "Demo directory seeded | buildings=%s | units=%s",
                len(buildings),
                len(units),
            )
            return len(units)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    def create_building(
        self,
        name: str,
        total_leasable_area: float,
        generator_fee: float,
        transformer_fee: float,
        building_id: Optional[int] = None,
    ) -> int:
        """Insert a building row and return its id."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Buildings (
                    id, name, total_leasable_area, generator_fee, transformer_fee
                )
                VALUES (?, ?, ?, ?, ?);
                """,
                (building_id, name, total_leasable_area, generator_fee, transformer_fee),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_unit(self, building_id: int, unit_number: str, unit_space: float) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Units (building_id, unit_number, unit_space)
                VALUES (?, ?, ?);
                """,
                (building_id, unit_number, unit_space),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def create_contract(
        self,
        unit_id: int,
        tenant_name: Optional[str],
        status: str = ACTIVE_CONTRACT_STATUS,
    ) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                INSERT INTO Contracts (unit_id, tenant_name, status)
                VALUES (?, ?, ?);
                """,
                (unit_id, tenant_name, status),
            )
            conn.commit()
            return int(cursor.lastrowid)

    def get_building(self, building_id: int) -> Optional[Building]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, name, total_leasable_area, generator_fee, transformer_fee
                FROM Buildings
                WHERE id = ?;
                """,
                (building_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return Building(
                building_id=int(row["id"]),
                name=str(row["name"]),
                total_leasable_area=float(row["total_leasable_area"] or 0.0),
                generator_fee=float(row["generator_fee"] or 0.0),
                transformer_fee=float(row["transformer_fee"] or 0.0),
            )

    def list_units(self, building_id: int) -> List[UnitRecord]:
        """Return the building's units in unit-number order."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, building_id, unit_number, unit_space
                FROM Units
                WHERE building_id = ?
                ORDER BY unit_number ASC, id ASC;
                """,
                (building_id,),
            )
            return [
                UnitRecord(
                    unit_id=int(row["id"]),
                    building_id=int(row["building_id"]),
                    unit_number=str(row["unit_number"]),
                    unit_space=float(row["unit_space"]),
                )
                for row in cursor.fetchall()
            ]

    def is_unit_occupied(self, unit_id: int) -> bool:
        """A unit is occupied while any active contract references it."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT 1
                FROM Contracts
                WHERE unit_id = ? AND status = ?
                LIMIT 1;
                """,
                (unit_id, ACTIVE_CONTRACT_STATUS),
            )
            return cursor.fetchone() is not None

    def get_active_tenant_name(self, unit_id: int) -> Optional[str]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT tenant_name
                FROM Contracts
                WHERE unit_id = ? AND status = ?
                ORDER BY id ASC
                LIMIT 1;
                """,
                (unit_id, ACTIVE_CONTRACT_STATUS),
            )
            row = cursor.fetchone()
            if row is None or row["tenant_name"] is None:
                return None
            return str(row["tenant_name"])

    def exists_allocation(self, building_id: int, period_start: date, period_end: date) -> bool:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT 1
                FROM ExpenseRecords
                WHERE building_id = ? AND period_start = ? AND period_end = ?
                LIMIT 1;
                """,
                (building_id, period_start.isoformat(), period_end.isoformat()),
            )
            return cursor.fetchone() is not None

    def insert_expense_record(self, draft: ExpenseDraft) -> ExpenseRecord:
        """Insert a PENDING record unless the building/period is already billed.

        The existence check, the insert and its CREATED event share one
        immediate transaction; the unique index catches anything that slips
        past the check.
        """
        recorded_at = _utc_now()
        period_start = draft.period_start.isoformat()
        period_end = draft.period_end.isoformat()
        with self._write_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT 1
                FROM ExpenseRecords
                WHERE building_id = ? AND period_start = ? AND period_end = ?
                LIMIT 1;
                """,
                (draft.building_id, period_start, period_end),
            )
            if cursor.fetchone() is not None:
                raise DuplicatePeriodError(draft.building_id, draft.period_start, draft.period_end)

            try:
                cursor.execute(
                    """
                    INSERT INTO ExpenseRecords (
                        building_id,
                        building_name,
                        period_start,
                        period_end,
                        total_amount,
                        generator_share,
                        transformer_share,
                        other_cam_share,
                        other_cam_costs,
                        total_vacant_area,
                        total_unallocated_area,
                        total_leasable_area,
                        total_cam_costs,
                        occupied_area,
                        occupied_units_count,
                        vacant_units_count,
                        description,
                        status,
                        date_recorded
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
                    """,
                    (
                        draft.building_id,
                        draft.building_name,
                        period_start,
                        period_end,
                        draft.total_amount,
                        draft.generator_share,
                        draft.transformer_share,
                        draft.other_cam_share,
                        draft.other_cam_costs,
                        draft.total_vacant_area,
                        draft.total_unallocated_area,
                        draft.total_leasable_area,
                        draft.total_cam_costs,
                        draft.occupied_area,
                        draft.occupied_units_count,
                        draft.vacant_units_count,
                        draft.description,
                        ExpenseStatus.PENDING.value,
                        recorded_at.isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                if "UNIQUE" not in str(exc).upper():
                    raise
                raise DuplicatePeriodError(
                    draft.building_id, draft.period_start, draft.period_end
                ) from exc

            expense_id = int(cursor.lastrowid)
            self._append_event(
                cursor,
                expense_id=expense_id,
                event_type=ExpenseEventType.CREATED,
                old_status=None,
                new_status=ExpenseStatus.PENDING,
                recorded_at=recorded_at,
                detail=f"total_amount={draft.total_amount:.2f}",
            )
            cursor.execute(
                f"SELECT {_EXPENSE_COLUMNS} FROM ExpenseRecords WHERE id = ?;",
                (expense_id,),
            )
            return _row_to_expense(cursor.fetchone())

    def get_expense_record(self, expense_id: int) -> Optional[ExpenseRecord]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_EXPENSE_COLUMNS} FROM ExpenseRecords WHERE id = ?;",
                (expense_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            return _row_to_expense(row)

    def list_expense_records(
        self,
        expense_filter: Optional[ExpenseFilter] = None,
    ) -> List[ExpenseRecord]:
        """Return records matching every provided filter, newest first."""
        expense_filter = expense_filter or ExpenseFilter()
        clauses: list[str] = []
        params: list[object] = []
        if expense_filter.building_id is not None:
            clauses.append("building_id = ?")
            params.append(expense_filter.building_id)
        if expense_filter.status is not None:
            clauses.append("status = ?")
            params.append(expense_filter.status.value)
        if expense_filter.start_date is not None:
            clauses.append("period_start >= ?")
            params.append(expense_filter.start_date.isoformat())
        if expense_filter.end_date is not None:
            clauses.append("period_end <= ?")
            params.append(expense_filter.end_date.isoformat())
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"""
                SELECT {_EXPENSE_COLUMNS}
                FROM ExpenseRecords
                {where}
                ORDER BY id DESC;
                """,
                tuple(params),
            )
            return [_row_to_expense(row) for row in cursor.fetchall()]

    def update_expense_status(
        self,
        expense_id: int,
        new_status: ExpenseStatus,
        *,
        permissive: bool = False,
    ) -> Optional[ExpenseRecord]:
        """Change only the status column; returns None for unknown ids."""
        with self._write_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT status FROM ExpenseRecords WHERE id = ?;",
                (expense_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return None
            current = ExpenseStatus(str(row["status"]))
            validate_status_transition(current, new_status, permissive=permissive)

            cursor.execute(
                "UPDATE ExpenseRecords SET status = ? WHERE id = ?;",
                (new_status.value, expense_id),
            )
            if current != new_status:
                self._append_event(
                    cursor,
                    expense_id=expense_id,
                    event_type=ExpenseEventType.STATUS_CHANGED,
                    old_status=current,
                    new_status=new_status,
                    recorded_at=_utc_now(),
                    detail="",
                )
            cursor.execute(
                f"SELECT {_EXPENSE_COLUMNS} FROM ExpenseRecords WHERE id = ?;",
                (expense_id,),
            )
            return _row_to_expense(cursor.fetchone())

    def delete_expense_record(self, expense_id: int) -> bool:
        """Physically remove the record, leaving a DELETED event behind."""
        with self._write_transaction() as conn:
            cursor = conn.cursor()
            cursor.execute(
                f"SELECT {_EXPENSE_COLUMNS} FROM ExpenseRecords WHERE id = ?;",
                (expense_id,),
            )
            row = cursor.fetchone()
            if row is None:
                return False
            record = _row_to_expense(row)
            cursor.execute("DELETE FROM ExpenseRecords WHERE id = ?;", (expense_id,))
            self._append_event(
                cursor,
                expense_id=expense_id,
                event_type=ExpenseEventType.DELETED,
                old_status=record.status,
                new_status=None,
                recorded_at=_utc_now(),
                detail=(
                    f"building_id={record.building_id} "
                    f"period={record.period_start.isoformat()}..{record.period_end.isoformat()} "
                    f"total_amount={record.total_amount:.2f}"
                ),
            )
            return True

    def list_expense_events(self, expense_id: int) -> List[ExpenseEvent]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                """
                SELECT id, expense_id, event_type, old_status, new_status, recorded_at, detail
                FROM ExpenseEvents
                WHERE expense_id = ?
                ORDER BY id ASC;
                """,
                (expense_id,),
            )
            return [_row_to_event(row) for row in cursor.fetchall()]

    def count_expense_records(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) AS count FROM ExpenseRecords;")
            return int(cursor.fetchone()["count"])

    @staticmethod
    def _append_event(
        cursor: sqlite3.Cursor,
        *,
        expense_id: int,
        event_type: ExpenseEventType,
        old_status: Optional[ExpenseStatus],
        new_status: Optional[ExpenseStatus],
        recorded_at: datetime,
        detail: str,
    ) -> None:
        cursor.execute(
            """
            INSERT INTO ExpenseEvents (
                expense_id, event_type, old_status, new_status, recorded_at, detail
            )
            VALUES (?, ?, ?, ?, ?, ?);
            """,
            (
                expense_id,
                event_type.value,
                old_status.value if old_status else None,
                new_status.value if new_status else None,
                recorded_at.isoformat(),
                detail,
            ),
        )
