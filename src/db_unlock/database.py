"""Thin wrapper around the SQLCipher DB-API driver.

Opens connections with the key applied, runs scalar queries and turns the
engine's "file is not a database" condition into :class:`WrongKeyError` so
callers never have to inspect driver error codes themselves.
"""

from __future__ import annotations

import logging
from contextlib import closing, contextmanager
from typing import Any, Iterator

from sqlcipher3 import dbapi2 as sqlcipher

from db_unlock.models import CipherSettings, ConnectionTarget, DatabaseStatus

logger = logging.getLogger(__name__)

# Reading the schema catalog forces the first page to be decrypted.
VERIFY_QUERY = "SELECT COUNT(*) FROM sqlite_master;"

DatabaseError = sqlcipher.DatabaseError
Connection = sqlcipher.Connection

_NOT_A_DATABASE = "file is not a database"


class WrongKeyError(Exception):
    """The key does not decrypt the database (or the file is not SQLite)."""


def is_wrong_key(exc: BaseException) -> bool:
    if not isinstance(exc, sqlcipher.DatabaseError):
        return False
    name = getattr(exc, "sqlite_errorname", None)
    if name is not None:
        return name == "SQLITE_NOTADB"
    return str(exc) == _NOT_A_DATABASE


@contextmanager
def _wrong_key_guard() -> Iterator[None]:
    try:
        yield
    except sqlcipher.DatabaseError as exc:
        if is_wrong_key(exc):
            raise WrongKeyError(str(exc)) from exc
        raise


def _quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def connect(
    target: ConnectionTarget,
    cipher: CipherSettings | None = None,
    timeout: float = 5.0,
) -> Connection:
    """Open ``target`` and apply its key. Never creates a missing file unless
    the descriptor asked for ``ReadWriteCreate``."""
    conn = sqlcipher.connect(target.uri, uri=True, timeout=timeout, check_same_thread=False)
    try:
        with _wrong_key_guard():
            if target.password:
                conn.execute(f"PRAGMA key = {_quote(target.password)};")
                for pragma, value in (cipher or CipherSettings()).pragmas():
                    conn.execute(f"PRAGMA {pragma} = {value};")
    except BaseException:
        conn.close()
        raise
    logger.debug("Opened %s (mode=%s, keyed=%s)", target.path, target.mode, bool(target.password))
    return conn


def scalar(conn: Connection, sql: str) -> Any:
    with _wrong_key_guard(), closing(conn.cursor()) as cur:
        cur.execute(sql)
        row = cur.fetchone()
    return row[0] if row else None


@contextmanager
def open_database(
    target: ConnectionTarget,
    cipher: CipherSettings | None = None,
) -> Iterator[Connection]:
    conn = connect(target, cipher)
    try:
        yield conn
    finally:
        conn.close()


def verify(target: ConnectionTarget, cipher: CipherSettings | None = None) -> None:
    """Raise :class:`WrongKeyError` unless ``target`` opens and decrypts."""
    with open_database(target, cipher) as conn:
        scalar(conn, VERIFY_QUERY)


def probe(target: ConnectionTarget) -> DatabaseStatus:
    """Classify the file at ``target`` without using a key."""
    if not target.path.exists():
        return DatabaseStatus.MISSING
    try:
        verify(target.with_password(""))
    except WrongKeyError:
        return DatabaseStatus.ENCRYPTED
    return DatabaseStatus.PLAINTEXT
