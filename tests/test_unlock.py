"""Tests for DatabaseUnlockService with the database layer mocked out."""

from __future__ import annotations

import asyncio
import logging
import re
from unittest.mock import MagicMock, patch

import pytest

from db_unlock.database import WrongKeyError
from db_unlock.models import DEFAULT_LABEL, DatabaseStatus
from db_unlock.unlock import INCORRECT_PASSWORD, DatabaseUnlockService

_DB = "Data Source=/tmp/app.db"


def _make_keychain(stored: bool = True, retrieved: str | None = None) -> MagicMock:
    keychain = MagicMock()
    keychain.store_key.return_value = stored
    keychain.retrieve_key.return_value = retrieved
    return keychain


def _unlock(service: DatabaseUnlockService, password: str, descriptor: str = _DB):
    return asyncio.run(service.unlock_database(descriptor, password))


@pytest.fixture()
def db():
    """Patch the driver-facing functions the service calls."""
    with (
        patch("db_unlock.unlock.database.connect") as connect,
        patch("db_unlock.unlock.database.scalar") as scalar,
    ):
        connect.return_value = MagicMock(name="conn")
        scalar.return_value = 3
        yield connect, scalar


class TestUnlockDatabase:
    def test_correct_password_succeeds_and_stores(self, db):
        keychain = _make_keychain()
        service = DatabaseUnlockService(keychain)

        result = _unlock(service, "hunter2")

        assert result.success is True
        assert result.error_message is None
        keychain.store_key.assert_called_once_with("hunter2", DEFAULT_LABEL)

    def test_password_reaches_the_open_call(self, db):
        connect, _ = db
        service = DatabaseUnlockService(_make_keychain())

        _unlock(service, "s3;cret=x")

        target = connect.call_args.args[0]
        assert target.password == "s3;cret=x"
        assert str(target.path) == "/tmp/app.db"

    def test_schema_query_runs_after_open(self, db):
        connect, scalar = db
        service = DatabaseUnlockService(_make_keychain())

        _unlock(service, "hunter2")

        scalar.assert_called_once()
        assert scalar.call_args.args[0] is connect.return_value
        assert "sqlite_master" in scalar.call_args.args[1]

    def test_wrong_password_returns_standard_message(self, db):
        _, scalar = db
        scalar.side_effect = WrongKeyError("file is not a database")
        keychain = _make_keychain()
        service = DatabaseUnlockService(keychain)

        result = _unlock(service, "wrong")

        assert result.success is False
        assert result.error_message == "Incorrect password. Please try again."
        keychain.store_key.assert_not_called()

    def test_wrong_key_raised_while_opening(self, db):
        connect, _ = db
        connect.side_effect = WrongKeyError("file is not a database")
        keychain = _make_keychain()

        result = _unlock(DatabaseUnlockService(keychain), "wrong")

        assert result.error_message == INCORRECT_PASSWORD
        keychain.store_key.assert_not_called()

    def test_empty_password_behaves_like_wrong_password(self, db):
        _, scalar = db
        scalar.side_effect = WrongKeyError("file is not a database")
        keychain = _make_keychain()

        result = _unlock(DatabaseUnlockService(keychain), "")

        assert result.success is False
        assert result.error_message == INCORRECT_PASSWORD
        keychain.store_key.assert_not_called()

    def test_other_error_is_prefixed(self, db):
        connect, _ = db
        connect.side_effect = OSError("unable to open database file")
        keychain = _make_keychain()

        result = _unlock(DatabaseUnlockService(keychain), "hunter2")

        assert result.success is False
        assert result.error_message == "Error unlocking database: unable to open database file"
        keychain.store_key.assert_not_called()

    def test_malformed_descriptor_is_reported_not_raised(self, db):
        result = _unlock(DatabaseUnlockService(_make_keychain()), "pw", descriptor="Mode=ReadOnly")

        assert result.success is False
        assert result.error_message.startswith("Error unlocking database: ")
        assert "Data Source" in result.error_message

    def test_store_failure_does_not_fail_unlock(self, db, caplog):
        keychain = _make_keychain(stored=False)

        with caplog.at_level(logging.WARNING, logger="db_unlock.unlock"):
            result = _unlock(DatabaseUnlockService(keychain), "hunter2")

        assert result.success is True
        assert result.error_message is None
        assert "Failed to store password in keychain" in caplog.text

    def test_store_raising_does_not_fail_unlock(self, db):
        keychain = _make_keychain()
        keychain.store_key.side_effect = RuntimeError("dbus went away")

        result = _unlock(DatabaseUnlockService(keychain), "hunter2")

        assert result.success is True

    def test_repeated_unlock_stores_every_time(self, db):
        keychain = _make_keychain()
        service = DatabaseUnlockService(keychain)

        first = _unlock(service, "hunter2")
        second = _unlock(service, "hunter2")

        assert first.success and second.success
        assert keychain.store_key.call_count == 2

    def test_connection_closed_on_success(self, db):
        connect, _ = db
        _unlock(DatabaseUnlockService(_make_keychain()), "hunter2")
        connect.return_value.close.assert_called_once()

    def test_connection_closed_on_query_failure(self, db):
        connect, scalar = db
        scalar.side_effect = WrongKeyError("file is not a database")

        _unlock(DatabaseUnlockService(_make_keychain()), "wrong")

        connect.return_value.close.assert_called_once()

    def test_custom_label_is_used(self, db):
        keychain = _make_keychain()
        service = DatabaseUnlockService(keychain, label="My App DB")

        _unlock(service, "hunter2")

        keychain.store_key.assert_called_once_with("hunter2", "My App DB")

    def test_injected_logger_receives_records(self, db):
        logger = MagicMock(spec=logging.Logger)
        _unlock(DatabaseUnlockService(_make_keychain(), logger=logger), "hunter2")

        messages = [c.args[0] for c in logger.info.call_args_list]
        assert "Password verification successful" in messages

    def test_password_never_logged(self, db, caplog):
        with caplog.at_level(logging.DEBUG):
            _unlock(DatabaseUnlockService(_make_keychain()), "very-secret-pw")
        assert "very-secret-pw" not in caplog.text


class TestPrepare:
    def test_missing_database_needs_no_unlock(self):
        keychain = _make_keychain()
        service = DatabaseUnlockService(keychain)

        with patch("db_unlock.unlock.database.probe", return_value=DatabaseStatus.MISSING):
            state = asyncio.run(service.prepare(_DB))

        assert state.needs_unlock is False
        assert state.status is DatabaseStatus.MISSING
        keychain.retrieve_key.assert_not_called()

    def test_plaintext_database_needs_no_unlock(self):
        service = DatabaseUnlockService(_make_keychain())

        with patch("db_unlock.unlock.database.probe", return_value=DatabaseStatus.PLAINTEXT):
            state = asyncio.run(service.prepare(_DB))

        assert state.needs_unlock is False
        assert state.password is None

    def test_encrypted_without_stored_key_needs_unlock(self):
        keychain = _make_keychain(retrieved=None)
        service = DatabaseUnlockService(keychain)

        with patch("db_unlock.unlock.database.probe", return_value=DatabaseStatus.ENCRYPTED):
            state = asyncio.run(service.prepare(_DB))

        assert state.needs_unlock is True
        assert state.status is DatabaseStatus.ENCRYPTED
        keychain.retrieve_key.assert_called_once_with(DEFAULT_LABEL)

    def test_encrypted_with_working_stored_key_unlocks_silently(self, db):
        keychain = _make_keychain(retrieved="hunter2")
        service = DatabaseUnlockService(keychain)

        with patch("db_unlock.unlock.database.probe", return_value=DatabaseStatus.ENCRYPTED):
            state = asyncio.run(service.prepare(_DB))

        assert state.needs_unlock is False
        assert state.password == "hunter2"
        keychain.store_key.assert_not_called()

    def test_encrypted_with_stale_stored_key_needs_unlock(self, db):
        _, scalar = db
        scalar.side_effect = WrongKeyError("file is not a database")
        keychain = _make_keychain(retrieved="old-password")
        service = DatabaseUnlockService(keychain)

        with patch("db_unlock.unlock.database.probe", return_value=DatabaseStatus.ENCRYPTED):
            state = asyncio.run(service.prepare(_DB))

        assert state.needs_unlock is True
        assert state.password is None

    def test_unopenable_file_is_reported(self):
        keychain = _make_keychain()
        service = DatabaseUnlockService(keychain)

        with patch("db_unlock.unlock.database.probe", side_effect=PermissionError("denied")):
            state = asyncio.run(service.prepare(_DB))

        assert state.status is DatabaseStatus.UNREADABLE
        assert state.error == "denied"
        assert state.needs_unlock is False
        keychain.retrieve_key.assert_not_called()

    def test_keychain_lookup_error_falls_back_to_prompt(self, caplog):
        keychain = _make_keychain()
        keychain.retrieve_key.side_effect = RuntimeError("dbus went away")
        service = DatabaseUnlockService(keychain)

        with (
            caplog.at_level(logging.WARNING),
            patch("db_unlock.unlock.database.probe", return_value=DatabaseStatus.ENCRYPTED),
        ):
            state = asyncio.run(service.prepare(_DB))

        assert state.status is DatabaseStatus.ENCRYPTED
        assert state.needs_unlock is True
        assert state.password is None
        assert "Keychain raised while retrieving password" in caplog.text

    def test_malformed_descriptor_raises(self):
        with pytest.raises(ValueError):
            asyncio.run(DatabaseUnlockService(_make_keychain()).prepare(""))


class TestStartWithNewDatabase:
    def test_archives_into_backups(self, tmp_path):
        db_file = tmp_path / "app.db"
        db_file.write_bytes(b"encrypted bytes")
        service = DatabaseUnlockService(_make_keychain())

        result = asyncio.run(service.start_with_new_database(db_file))

        assert result.success is True
        assert result.error_message is None
        assert not db_file.exists()
        assert result.archived_path.parent == tmp_path / "Backups"
        assert re.fullmatch(r"app\.\d{8}-\d{6}\.encrypted\.db", result.archived_path.name)
        assert result.archived_path.read_bytes() == b"encrypted bytes"

    def test_missing_database_fails(self, tmp_path):
        service = DatabaseUnlockService(_make_keychain())

        result = asyncio.run(service.start_with_new_database(tmp_path / "nope.db"))

        assert result.success is False
        assert result.archived_path is None
        assert result.error_message.startswith("Error archiving database: ")
