"""Verify database passwords and remember the good ones in the keychain."""

from __future__ import annotations

import asyncio
import logging
import shutil
from datetime import datetime
from pathlib import Path

from db_unlock import database
from db_unlock.database import WrongKeyError
from db_unlock.keychain import SecretStore
from db_unlock.models import (
    DEFAULT_LABEL,
    ArchiveResult,
    CipherSettings,
    ConnectionTarget,
    DatabaseStatus,
    UnlockResult,
    UnlockState,
)

INCORRECT_PASSWORD = "Incorrect password. Please try again."
BACKUPS_DIR = "Backups"


class DatabaseUnlockService:
    """Unlocks encrypted databases with a user-supplied password.

    The secret store and logger are injected so callers (and tests) can swap
    in their own; the default logger is this module's.
    """

    def __init__(
        self,
        keychain: SecretStore,
        logger: logging.Logger | None = None,
        label: str = DEFAULT_LABEL,
        cipher: CipherSettings | None = None,
    ) -> None:
        self._keychain = keychain
        self._logger = logger or logging.getLogger(__name__)
        self._label = label
        self._cipher = cipher or CipherSettings()

    async def unlock_database(self, connection_string: str, password: str) -> UnlockResult:
        """Check that ``password`` decrypts the database, then store it.

        Never raises: every outcome is reported through the result.
        """
        try:
            self._logger.info("Attempting database unlock verification")
            await self._verify(connection_string, password)
            self._logger.info("Password verification successful")
        except WrongKeyError:
            self._logger.warning("Incorrect password provided")
            return UnlockResult.failure(INCORRECT_PASSWORD)
        except Exception as exc:
            self._logger.error("Error unlocking database", exc_info=True)
            return UnlockResult.failure(f"Error unlocking database: {exc}")

        if await asyncio.to_thread(self._store, password):
            self._logger.info("Password stored in keychain successfully")
        else:
            self._logger.warning("Failed to store password in keychain")
        return UnlockResult.ok()

    async def _verify(self, connection_string: str, password: str) -> None:
        target = ConnectionTarget.parse(connection_string).with_password(password)
        conn = await asyncio.to_thread(database.connect, target, self._cipher)
        try:
            await asyncio.to_thread(database.scalar, conn, database.VERIFY_QUERY)
        finally:
            conn.close()

    def _store(self, password: str) -> bool:
        try:
            return self._keychain.store_key(password, self._label)
        except Exception:
            self._logger.warning("Keychain raised while storing password", exc_info=True)
            return False

    def _retrieve(self) -> str | None:
        try:
            return self._keychain.retrieve_key(self._label)
        except Exception:
            self._logger.warning("Keychain raised while retrieving password", exc_info=True)
            return None

    async def prepare(self, connection_string: str) -> UnlockState:
        """Work out whether the database needs an interactive unlock.

        Encrypted databases are unlocked silently when the keychain still holds
        a password that works. A file that exists but cannot be opened comes
        back as ``UNREADABLE`` with the cause in ``error``. Raises ValueError for
        a malformed descriptor.
        """
        target = ConnectionTarget.parse(connection_string)
        state = UnlockState(connection_string=connection_string, database_path=target.path)
        try:
            state.status = await asyncio.to_thread(database.probe, target)
        except Exception as exc:
            self._logger.warning("Could not check database encryption status", exc_info=True)
            state.status = DatabaseStatus.UNREADABLE
            state.error = str(exc)
            return state

        if state.status is not DatabaseStatus.ENCRYPTED:
            self._logger.info("Database is %s, no unlock needed", state.status.value)
            return state

        self._logger.info("Detected encrypted database, looking up keychain password")
        stored = await asyncio.to_thread(self._retrieve)
        if stored:
            try:
                await self._verify(connection_string, stored)
            except WrongKeyError:
                self._logger.warning("Keychain password no longer decrypts the database")
            except Exception:
                self._logger.warning("Could not verify keychain password", exc_info=True)
            else:
                self._logger.info("Database unlocked with keychain password")
                state.password = stored
                return state

        state.needs_unlock = True
        return state

    async def start_with_new_database(self, database_path: str | Path) -> ArchiveResult:
        """Move an encrypted database whose password is lost into ``Backups/``.

        The application creates a fresh database on its next start.
        """
        try:
            self._logger.warning("User requested new database - archiving encrypted database")
            source = Path(database_path)
            backups = source.parent / BACKUPS_DIR
            backups.mkdir(parents=True, exist_ok=True)

            timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
            archived = backups / f"{source.stem}.{timestamp}.encrypted.db"
            await asyncio.to_thread(shutil.move, source, archived)
            self._logger.info("Encrypted database archived to: %s", archived)
            return ArchiveResult.ok(archived)
        except Exception as exc:
            self._logger.error("Error archiving encrypted database", exc_info=True)
            return ArchiveResult.failure(f"Error archiving database: {exc}")
