"""
devices/store.py -- SQLAlchemy Core persistence layer for registered devices.

Pattern: Repository + Data Mapper. DeviceStore is the repository;
_row_to_device_user is the mapper. The registration coordinator and the
login authenticator never touch SQL directly.

Atomic units:
  DeviceStore.transaction() is the only way to write. It opens one
  connection, begins a transaction, and yields a TransactionUnit. Leaving the
  block normally commits; leaving it with any exception rolls back and
  re-raises the original error. A failed rollback is logged and never
  replaces that error. The connection is returned to the pool either way.

  Every unit carries a deadline. Each unit operation and the final commit
  check it, so a unit that overruns is rolled back with StorageError instead
  of holding the SQLite write lock.

Security:
  All queries use bound parameters. No f-strings in SQL.
  UNIQUE(serial_number), UNIQUE(email), UNIQUE(identity_id) are schema-level.
  exists() is advisory; the constraints decide concurrent registrations.

Reads (exists, get_by_*) always run on a fresh pooled connection and only
ever see committed rows. Nothing is cached in process.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, func, select, text
from sqlalchemy.engine import Connection, Engine, Transaction
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import ConflictError, StorageError
from devices.models import DeviceUser, LookupField

logger = logging.getLogger("winklink.devices")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'winklink.db'}"
_DEFAULT_TRANSACTION_TIMEOUT = 5.0

SERIAL_NUMBER_MAX_LENGTH = 12

# Human-readable names used in conflict messages.
FIELD_LABELS: dict[str, str] = {
    "serial_number": "Serial number",
    "email": "Email",
    "owner_name": "Username",
    "device_name": "Device name",
    "identity_id": "Identity",
}

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

_users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("identity_id", String(36), nullable=False, unique=True),
    Column("serial_number", String(SERIAL_NUMBER_MAX_LENGTH), nullable=False, unique=True),
    Column("device_name", String(255)),
    Column("owner_name", String(255)),  # the account username
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", Text),  # argon2id PHC string, set in step 2
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers never block on, or see, an open unit.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _conflict_field(exc: IntegrityError) -> Optional[str]:
    """Best-effort name of the unique column an IntegrityError tripped on.

    SQLite reports "UNIQUE constraint failed: users.email"; PostgreSQL names
    the index ("users_email_key"). Both contain the column name.
    """
    message = str(exc.orig)
    for column in ("serial_number", "email", "identity_id"):
        if column in message:
            return column
    return None


def _conflict_error(exc: IntegrityError, operation: str) -> ConflictError:
    field = _conflict_field(exc)
    return ConflictError(
        f"{FIELD_LABELS.get(field, 'Record')} already exists",
        field=field,
        operation=operation,
    )


def _rollback(trans: Transaction, cause: BaseException) -> None:
    if not trans.is_active:
        return
    try:
        trans.rollback()
    except SQLAlchemyError:
        logger.exception("Rollback failed after %s", type(cause).__name__)
        return
    logger.warning("Rolled back transaction after %s", type(cause).__name__)


# ---------------------------------------------------------------------------
# Atomic unit
# ---------------------------------------------------------------------------


class TransactionUnit:
    """Write operations available inside DeviceStore.transaction().

    The unit never commits or rolls back on its own -- that is the context
    manager's job. Each method checks the deadline first, then translates
    driver errors: IntegrityError -> ConflictError, anything else ->
    StorageError.
    """

    def __init__(self, conn: Connection, deadline: float) -> None:
        self._conn = conn
        self._deadline = deadline

    def check_deadline(self, operation: str) -> None:
        if time.monotonic() >= self._deadline:
            raise StorageError("Transaction timed out", operation=operation)

    def insert_identity(self, identity_id: str, serial_number: str, email: str, created_at: str) -> None:
        """Step 1: create the row with identity and contact fields only."""
        self._execute(
            "insert_identity",
            _users.insert().values(
                identity_id=identity_id,
                serial_number=serial_number,
                email=email,
                created_at=created_at,
            ),
        )

    def set_credentials(self, identity_id: str, owner_name: str, password_hash: str) -> None:
        """Step 2: attach the username and an already-hashed password."""
        result = self._execute(
            "set_credentials",
            _users.update()
            .where(_users.c.identity_id == identity_id)
            .values(owner_name=owner_name, password_hash=password_hash),
        )
        self._require_one_row(result.rowcount, "set_credentials")

    def set_device_name(self, identity_id: str, device_name: str) -> None:
        """Step 3: attach the display name of the device."""
        result = self._execute(
            "set_device_name",
            _users.update().where(_users.c.identity_id == identity_id).values(device_name=device_name),
        )
        self._require_one_row(result.rowcount, "set_device_name")

    def _execute(self, operation: str, statement):
        self.check_deadline(operation)
        try:
            return self._conn.execute(statement)
        except IntegrityError as exc:
            raise _conflict_error(exc, operation) from exc
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to {operation.replace('_', ' ')}", operation=operation) from exc

    @staticmethod
    def _require_one_row(rowcount: int, operation: str) -> None:
        if rowcount != 1:
            raise StorageError(f"Expected one row for {operation}, matched {rowcount}", operation=operation)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class DeviceStore:
    """Repository for DeviceUser records.

    Usage:
        store = DeviceStore()
        with store.transaction() as unit:
            unit.insert_identity(identity_id, "SN12345678", "a@x.com", created_at)
            unit.set_credentials(identity_id, "alice", password_hash)
            unit.set_device_name(identity_id, "phone")
        store.exists(LookupField.serial_number, "SN12345678")   # True
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, transaction_timeout: float = _DEFAULT_TRANSACTION_TIMEOUT) -> None:
        self.transaction_timeout = transaction_timeout
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            # Busy wait for the write lock never outlives the unit deadline.
            connect_args["timeout"] = transaction_timeout
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Atomic units
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self, timeout: Optional[float] = None) -> Iterator[TransactionUnit]:
        """Open an atomic unit; commit on clean exit, roll back on any exception."""
        budget = self.transaction_timeout if timeout is None else timeout
        try:
            conn = self.engine.connect()
        except SQLAlchemyError as exc:
            raise StorageError("Failed to start transaction", operation="begin") from exc
        try:
            trans = conn.begin()
            unit = TransactionUnit(conn, deadline=time.monotonic() + budget)
            try:
                yield unit
                unit.check_deadline("commit")
                self._commit(trans)
            except BaseException as exc:
                _rollback(trans, exc)
                raise
        finally:
            conn.close()

    @staticmethod
    def _commit(trans: Transaction) -> None:
        try:
            trans.commit()
        except IntegrityError as exc:
            raise _conflict_error(exc, "commit") from exc
        except SQLAlchemyError as exc:
            raise StorageError("Failed to commit transaction", operation="commit") from exc
        logger.debug("Committed transaction")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, field: LookupField, value: str) -> bool:
        """Return True if any committed row has `value` in `field`.

        Advisory only: two concurrent registrations can both see False.
        Raises ValueError for a field outside LookupField.
        """
        column = _users.c[LookupField(field).value]
        stmt = select(func.count()).select_from(_users).where(column == value)
        count = self._scalar(f"check {column.name}", stmt)
        return (count or 0) > 0

    def get_by_email(self, email: str) -> Optional[DeviceUser]:
        row = self._fetchone("look up user", _users.select().where(_users.c.email == email))
        return _row_to_device_user(row) if row is not None else None

    def get_by_serial_number(self, serial_number: str) -> Optional[DeviceUser]:
        row = self._fetchone("look up device", _users.select().where(_users.c.serial_number == serial_number))
        return _row_to_device_user(row) if row is not None else None

    def get_by_identity(self, identity_id: str) -> Optional[DeviceUser]:
        row = self._fetchone("look up identity", _users.select().where(_users.c.identity_id == identity_id))
        return _row_to_device_user(row) if row is not None else None

    def count_users(self) -> int:
        return self._scalar("count users", select(func.count()).select_from(_users)) or 0

    def ping(self) -> bool:
        """Read-only liveness probe used by GET /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Database ping failed")
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _scalar(self, operation: str, stmt):
        try:
            with self.engine.connect() as conn:
                return conn.execute(stmt).scalar()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to {operation}", operation=operation) from exc

    def _fetchone(self, operation: str, stmt):
        try:
            with self.engine.connect() as conn:
                return conn.execute(stmt).fetchone()
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to {operation}", operation=operation) from exc


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_device_user(row) -> DeviceUser:
    return DeviceUser(
        id=row.id,
        identity_id=row.identity_id,
        serial_number=row.serial_number,
        email=row.email,
        created_at=row.created_at,
        owner_name=row.owner_name,
        device_name=row.device_name,
        password_hash=row.password_hash,
    )
