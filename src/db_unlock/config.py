"""Configuration management — reads/writes ~/.config/db-unlock/config.toml."""

from __future__ import annotations

import tomllib
from pathlib import Path

from db_unlock.models import DEFAULT_LABEL, CipherSettings, Settings

CONFIG_DIR = Path.home() / ".config" / "db-unlock"
CONFIG_FILE = CONFIG_DIR / "config.toml"


def _escape_toml(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_value(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return f'"{_escape_toml(str(value))}"'


def ensure_config_dir() -> None:
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)


def load_config() -> dict:
    if not CONFIG_FILE.exists():
        return {}
    with open(CONFIG_FILE, "rb") as f:
        return tomllib.load(f)


def save_config(config: dict) -> None:
    # tomllib is read-only; the config is flat enough to write by hand.
    ensure_config_dir()
    lines: list[str] = []
    tables = {k: v for k, v in config.items() if isinstance(v, dict)}
    for key, value in config.items():
        if key not in tables:
            lines.append(f"{key} = {_format_value(value)}")
    if lines:
        lines.append("")
    for name, table in tables.items():
        lines.append(f"[{name}]")
        for k, v in table.items():
            lines.append(f"{k} = {_format_value(v)}")
        lines.append("")
    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def load_settings() -> Settings:
    config = load_config()
    db = config.get("database", {})
    cipher = config.get("cipher", {})
    defaults = CipherSettings()
    return Settings(
        database_path=db.get("path", ""),
        keychain_label=db.get("keychain_label", DEFAULT_LABEL),
        log_level=config.get("log_level", "INFO"),
        cipher=CipherSettings(
            cipher_page_size=cipher.get("cipher_page_size", defaults.cipher_page_size),
            kdf_iter=cipher.get("kdf_iter", defaults.kdf_iter),
            cipher_hmac_algorithm=cipher.get("cipher_hmac_algorithm", defaults.cipher_hmac_algorithm),
            cipher_kdf_algorithm=cipher.get("cipher_kdf_algorithm", defaults.cipher_kdf_algorithm),
        ),
    )


def save_settings(settings: Settings) -> None:
    save_config({
        "log_level": settings.log_level,
        "database": {
            "path": settings.database_path,
            "keychain_label": settings.keychain_label,
        },
        "cipher": dict(settings.cipher.pragmas()),
    })


def set_database_path(path: str) -> None:
    settings = load_settings()
    settings.database_path = path
    save_settings(settings)
