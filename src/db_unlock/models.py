"""Data models for db-unlock."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable

DEFAULT_LABEL = "db-unlock Database Encryption Password"

# Keys accepted for the file name in ADO-style connection strings.
_DATA_SOURCE_KEYS = frozenset({"data source", "datasource", "filename"})

# Connection string Mode values mapped onto sqlite URI modes.
_MODES = {
    "readwrite": "rw",
    "readonly": "ro",
    "readwritecreate": "rwc",
    "rw": "rw",
    "ro": "ro",
    "rwc": "rwc",
}

# Algorithm names SQLCipher accepts for the cipher pragmas.
HMAC_ALGORITHMS = frozenset({"HMAC_SHA1", "HMAC_SHA256", "HMAC_SHA512"})
KDF_ALGORITHMS = frozenset({"PBKDF2_HMAC_SHA1", "PBKDF2_HMAC_SHA256", "PBKDF2_HMAC_SHA512"})


@dataclass(frozen=True)
class UnlockResult:
    success: bool
    error_message: str | None = None

    def __post_init__(self) -> None:
        if self.success and self.error_message is not None:
            raise ValueError("a successful unlock carries no error message")
        if not self.success and not self.error_message:
            raise ValueError("a failed unlock needs an error message")

    @classmethod
    def ok(cls) -> UnlockResult:
        return cls(success=True)

    @classmethod
    def failure(cls, message: str) -> UnlockResult:
        return cls(success=False, error_message=message)


@dataclass(frozen=True)
class ArchiveResult:
    success: bool
    archived_path: Path | None = None
    error_message: str | None = None

    def __post_init__(self) -> None:
        if self.success and (self.archived_path is None or self.error_message is not None):
            raise ValueError("a successful archive carries a path and no error message")
        if not self.success and (self.archived_path is not None or not self.error_message):
            raise ValueError("a failed archive carries an error message and no path")

    @classmethod
    def ok(cls, archived_path: Path) -> ArchiveResult:
        return cls(success=True, archived_path=archived_path)

    @classmethod
    def failure(cls, message: str) -> ArchiveResult:
        return cls(success=False, error_message=message)


@dataclass(frozen=True)
class ConnectionTarget:
    """A parsed connection descriptor.

    Accepts either a bare filesystem path or an ADO-style string such as
    ``Data Source=/var/lib/app/app.db;Mode=ReadWrite``.
    """

    path: Path
    password: str = field(default="", repr=False)
    mode: str = "rw"

    @classmethod
    def parse(cls, descriptor: str) -> ConnectionTarget:
        descriptor = descriptor.strip()
        if not descriptor:
            raise ValueError("connection descriptor is empty")
        if "=" not in descriptor:
            return cls(path=Path(descriptor).expanduser())

        path: Path | None = None
        password = ""
        mode = "rw"
        for part in descriptor.split(";"):
            if not part.strip():
                continue
            key, sep, value = part.partition("=")
            if not sep:
                raise ValueError(f"malformed connection string segment: {part.strip()!r}")
            key = key.strip().lower()
            value = value.strip()
            if key in _DATA_SOURCE_KEYS:
                path = Path(value).expanduser()
            elif key == "password":
                password = value
            elif key == "mode":
                mode = _MODES.get(value.lower(), "")
                if not mode:
                    raise ValueError(f"unsupported connection mode: {value!r}")
        if path is None:
            raise ValueError("connection string has no Data Source")
        return cls(path=path, password=password, mode=mode)

    def with_password(self, password: str) -> ConnectionTarget:
        return replace(self, password=password)

    @property
    def uri(self) -> str:
        return f"{self.path.resolve().as_uri()}?mode={self.mode}"


@dataclass(frozen=True)
class CipherSettings:
    """SQLCipher 4 parameters applied right after the key."""

    cipher_page_size: int = 4096
    kdf_iter: int = 256000
    cipher_hmac_algorithm: str = "HMAC_SHA512"
    cipher_kdf_algorithm: str = "PBKDF2_HMAC_SHA512"

    def __post_init__(self) -> None:
        # Values come from the config file and end up inside PRAGMA statements.
        for name in ("cipher_page_size", "kdf_iter"):
            value = getattr(self, name)
            if isinstance(value, bool):
                raise ValueError(f"{name} must be an integer, got {value!r}")
            try:
                number = int(value)
            except (TypeError, ValueError):
                raise ValueError(f"{name} must be an integer, got {value!r}") from None
            if number <= 0:
                raise ValueError(f"{name} must be positive, got {number}")
            object.__setattr__(self, name, number)
        if self.cipher_hmac_algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"unknown cipher_hmac_algorithm: {self.cipher_hmac_algorithm!r}")
        if self.cipher_kdf_algorithm not in KDF_ALGORITHMS:
            raise ValueError(f"unknown cipher_kdf_algorithm: {self.cipher_kdf_algorithm!r}")

    def pragmas(self) -> list[tuple[str, str | int]]:
        return [
            ("cipher_page_size", self.cipher_page_size),
            ("kdf_iter", self.kdf_iter),
            ("cipher_hmac_algorithm", self.cipher_hmac_algorithm),
            ("cipher_kdf_algorithm", self.cipher_kdf_algorithm),
        ]


class DatabaseStatus(enum.Enum):
    MISSING = "missing"
    PLAINTEXT = "plaintext"
    ENCRYPTED = "encrypted"
    UNREADABLE = "unreadable"


@dataclass
class Settings:
    database_path: str = ""
    keychain_label: str = DEFAULT_LABEL
    log_level: str = "INFO"
    cipher: CipherSettings = field(default_factory=CipherSettings)


@dataclass
class UnlockState:
    """Tracks whether the current database still needs unlocking."""

    connection_string: str
    database_path: Path | None = None
    status: DatabaseStatus = DatabaseStatus.MISSING
    needs_unlock: bool = False
    error: str | None = None
    password: str | None = field(default=None, repr=False)
    _listeners: list[Callable[[], None]] = field(default_factory=list, repr=False)

    def on_unlock_success(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def mark_unlocked(self, password: str) -> None:
        self.needs_unlock = False
        self.password = password
        for listener in list(self._listeners):
            listener()
