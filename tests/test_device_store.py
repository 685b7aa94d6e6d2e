"""Unit tests for devices/store.py -- device store queries and atomic units.

Covers:
- exists() for every LookupField, and rejection of unknown fields
- schema-level UNIQUE constraints surface as ConflictError
- transaction(): commit on success, rollback on any exception
- an open unit is invisible to exists() / get_by_*() (no dirty reads)
- unit deadline: an expired unit raises StorageError and leaves no row
- a failed rollback is logged and never replaces the original error
"""

import logging
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from core.errors import ConflictError, StorageError
from devices.models import LookupField
from devices.store import DeviceStore, _rollback

_CREATED = "2026-01-01T00:00:00+00:00"


def _insert_complete(store: DeviceStore, identity_id: str = "id-1", serial: str = "SN0001", email: str = "a@x.com"):
    with store.transaction() as unit:
        unit.insert_identity(identity_id, serial, email, _CREATED)
        unit.set_credentials(identity_id, "alice", "$argon2id$fake")
        unit.set_device_name(identity_id, "phone")


# ---------------------------------------------------------------------------
# TestExists
# ---------------------------------------------------------------------------


class TestExists:
    def test_empty_store(self, store: DeviceStore) -> None:
        for field in LookupField:
            assert store.exists(field, "anything") is False

    def test_every_field_after_commit(self, store: DeviceStore) -> None:
        _insert_complete(store)
        assert store.exists(LookupField.serial_number, "SN0001")
        assert store.exists(LookupField.email, "a@x.com")
        assert store.exists(LookupField.owner_name, "alice")
        assert store.exists(LookupField.device_name, "phone")
        assert store.exists(LookupField.identity_id, "id-1")
        assert not store.exists(LookupField.serial_number, "SN0002")

    def test_accepts_field_name_string(self, store: DeviceStore) -> None:
        _insert_complete(store)
        assert store.exists("email", "a@x.com")

    def test_unknown_field_rejected(self, store: DeviceStore) -> None:
        with pytest.raises(ValueError):
            store.exists("password_hash", "x")


# ---------------------------------------------------------------------------
# TestLookups
# ---------------------------------------------------------------------------


class TestLookups:
    def test_get_by_email_and_serial(self, store: DeviceStore) -> None:
        _insert_complete(store)
        by_email = store.get_by_email("a@x.com")
        by_serial = store.get_by_serial_number("SN0001")
        assert by_email is not None and by_serial is not None
        assert by_email.identity_id == by_serial.identity_id == "id-1"
        assert by_email.owner_name == "alice"
        assert by_email.device_name == "phone"
        assert by_email.created_at == _CREATED

    def test_missing_returns_none(self, store: DeviceStore) -> None:
        assert store.get_by_email("nobody@x.com") is None
        assert store.get_by_serial_number("SN9999") is None
        assert store.get_by_identity("id-missing") is None

    def test_email_lookup_is_exact(self, store: DeviceStore) -> None:
        _insert_complete(store)
        assert store.get_by_email("A@X.COM") is None

    def test_ping(self, store: DeviceStore) -> None:
        assert store.ping() is True


# ---------------------------------------------------------------------------
# TestUniqueConstraints
# ---------------------------------------------------------------------------


class TestUniqueConstraints:
    @pytest.mark.parametrize(
        ("identity_id", "serial", "email", "field"),
        [
            ("id-2", "SN0001", "b@x.com", "serial_number"),
            ("id-2", "SN0002", "a@x.com", "email"),
            ("id-1", "SN0002", "b@x.com", "identity_id"),
        ],
    )
    def test_duplicate_rejected_at_schema_level(
        self, store: DeviceStore, identity_id: str, serial: str, email: str, field: str
    ) -> None:
        """Bypassing exists() entirely, the table itself refuses duplicates."""
        _insert_complete(store)
        with pytest.raises(ConflictError) as info:
            with store.transaction() as unit:
                unit.insert_identity(identity_id, serial, email, _CREATED)
        assert info.value.field == field
        assert info.value.status_code == 409
        assert store.count_users() == 1


# ---------------------------------------------------------------------------
# TestTransaction
# ---------------------------------------------------------------------------


class TestTransaction:
    def test_commit_makes_row_visible(self, store: DeviceStore) -> None:
        _insert_complete(store)
        assert store.count_users() == 1

    def test_exception_rolls_back_every_step(self, store: DeviceStore) -> None:
        with pytest.raises(RuntimeError):
            with store.transaction() as unit:
                unit.insert_identity("id-1", "SN0001", "a@x.com", _CREATED)
                unit.set_credentials("id-1", "alice", "$argon2id$fake")
                raise RuntimeError("step 3 exploded")
        assert store.count_users() == 0
        assert not store.exists(LookupField.identity_id, "id-1")

    def test_open_unit_invisible_to_readers(self, store: DeviceStore) -> None:
        with store.transaction() as unit:
            unit.insert_identity("id-1", "SN0001", "a@x.com", _CREATED)
            assert not store.exists(LookupField.serial_number, "SN0001")
            assert store.get_by_email("a@x.com") is None
        assert store.exists(LookupField.serial_number, "SN0001")

    def test_update_of_unknown_identity_is_storage_error(self, store: DeviceStore) -> None:
        with pytest.raises(StorageError) as info:
            with store.transaction() as unit:
                unit.set_device_name("id-missing", "phone")
        assert info.value.operation == "set_device_name"

    def test_expired_deadline_rolls_back(self, store: DeviceStore) -> None:
        with pytest.raises(StorageError) as info:
            with store.transaction(timeout=0) as unit:
                unit.insert_identity("id-1", "SN0001", "a@x.com", _CREATED)
        assert "timed out" in info.value.message
        assert store.count_users() == 0

    def test_deadline_checked_before_commit(self, store: DeviceStore, monkeypatch) -> None:
        """A unit whose steps finished but overran its budget must not commit."""
        import devices.store as store_module

        # begin -> deadline 105; insert check at 100; commit check at 200.
        clock = iter([100.0, 100.0, 200.0])
        monkeypatch.setattr(store_module, "time", SimpleNamespace(monotonic=lambda: next(clock)))
        with pytest.raises(StorageError) as info:
            with store.transaction(timeout=5) as unit:
                unit.insert_identity("id-1", "SN0001", "a@x.com", _CREATED)
        assert info.value.operation == "commit"
        assert store.count_users() == 0


class TestRollbackFailure:
    def test_rollback_failure_is_logged_not_raised(self, caplog) -> None:
        trans = MagicMock()
        trans.is_active = True
        trans.rollback.side_effect = OperationalError("ROLLBACK", {}, Exception("disk gone"))
        with caplog.at_level(logging.ERROR, logger="winklink.devices"):
            _rollback(trans, ValueError("original"))
        assert "Rollback failed after ValueError" in caplog.text

    def test_inactive_transaction_skipped(self) -> None:
        trans = MagicMock()
        trans.is_active = False
        _rollback(trans, ValueError("original"))
        trans.rollback.assert_not_called()
