"""SQLite backed key-value persistence for voicenote settings."""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Mapping, Optional

from .models import DEFAULT_MODEL, DEFAULT_PROVIDER, SttSettings

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

PROVIDER_KEY = "stt_provider"
API_KEY_KEY = "stt_api_key"
MODEL_KEY = "stt_model"
LANGUAGE_KEY = "stt_language"


class StorageError(RuntimeError):
    """Raised when something goes wrong while accessing the storage."""


class SettingsStore:
    """Manage string settings keyed by name using SQLite."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        self._ensure_initialised()

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Connection]:
        """Serialised connection that commits on success and wraps SQLite failures."""

        with self._lock:
            try:
                with sqlite3.connect(self.db_path) as conn:
                    yield conn
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to {action} in {self.db_path}: {exc}") from exc

    def _ensure_initialised(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._transaction("initialise settings") as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS app_settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "INSERT OR IGNORE INTO app_settings(key, value) VALUES(?, ?)",
                ("schema_version", str(SCHEMA_VERSION)),
            )

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self._transaction(f"read setting {key!r}") as conn:
            row = conn.execute("SELECT value FROM app_settings WHERE key = ?", (key,)).fetchone()
        return default if row is None else row[0]

    def set(self, key: str, value: str) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, str]) -> None:
        """Write every pair in a single transaction."""

        with self._transaction(f"save settings {sorted(values)}") as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO app_settings(key, value) VALUES(?, ?)",
                list(values.items()),
            )

    def delete(self, key: str) -> None:
        with self._transaction(f"delete setting {key!r}") as conn:
            conn.execute("DELETE FROM app_settings WHERE key = ?", (key,))

    def keys(self) -> Iterator[str]:
        with self._transaction("list settings") as conn:
            rows = conn.execute("SELECT key FROM app_settings ORDER BY key").fetchall()
        for (key,) in rows:
            yield key


def load_stt_settings(store: SettingsStore) -> SttSettings:
    return SttSettings(
        provider=store.get(PROVIDER_KEY, DEFAULT_PROVIDER) or DEFAULT_PROVIDER,
        api_key=store.get(API_KEY_KEY),
        model=store.get(MODEL_KEY, DEFAULT_MODEL) or DEFAULT_MODEL,
        language=store.get(LANGUAGE_KEY),
    )


def save_stt_settings(store: SettingsStore, settings: SttSettings) -> None:
    """Persist settings; a missing api key or language keeps the stored value."""

    values = {PROVIDER_KEY: settings.provider, MODEL_KEY: settings.model}
    if settings.api_key is not None:
        values[API_KEY_KEY] = settings.api_key
    if settings.language is not None:
        values[LANGUAGE_KEY] = settings.language
    store.set_many(values)
    logger.info("STT settings saved (provider=%s, model=%s)", settings.provider, settings.model)
