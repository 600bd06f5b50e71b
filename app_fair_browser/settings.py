#!/usr/bin/env python3
"""
Key-value app settings and favorites, stored in SQLite.

Hub host, organization, repository and token are read from the settings
database with environment variables taking precedence.
"""

import logging
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from .token_cipher import TokenCipher, get_token_cipher, is_encrypted

DEFAULT_SETTINGS = {
    "hub_host": "api.github.com",
    "hub_org": "appfair",
    "hub_repo": "App",
    "hub_token": "",
}

ENVIRONMENT_OVERRIDES = {
    "hub_host": "APP_FAIR_HUB_HOST",
    "hub_org": "APP_FAIR_HUB_ORG",
    "hub_repo": "APP_FAIR_HUB_REPO",
    "hub_token": "GITHUB_TOKEN",
}

SECRET_KEYS = {"hub_token"}


class SettingsError(Exception):
    """Raised for unknown settings keys or unreadable stored values."""
    pass


@dataclass(frozen=True)
class HubSettings:
    """Resolved connection settings for the hub."""
    host: str
    org: str
    repo: str
    token: Optional[str] = None

    def to_dict(self) -> Dict:
        """Settings for display, with the token masked."""
        return {
            "hub_host": self.host,
            "hub_org": self.org,
            "hub_repo": self.repo,
            "hub_token": "****" if self.token else "",
        }


class SettingsStore:
    """Handles all database operations for settings and favorites."""

    def __init__(self, db_path: str, cipher: Optional[TokenCipher] = None):
        """
        Initialize the settings store.

        Args:
            db_path: Path to the SQLite database file.
            cipher: Optional cipher used for secret values.
        """
        self.db_path = db_path
        self.cipher = cipher
        self.conn = None
        self.logger = logging.getLogger(__name__)

    def __enter__(self):
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.conn:
            self.conn.close()
            self.conn = None

    def setup_database(self):
        """Create the necessary tables if they don't exist."""
        try:
            with self.conn:
                self.conn.execute("""
                    CREATE TABLE IF NOT EXISTS settings (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    )
                """)
                self.conn.execute("""
                    CREATE TABLE IF NOT EXISTS favorites (
                        release_id INTEGER PRIMARY KEY,
                        added_at TEXT NOT NULL
                    )
                """)
            self.logger.debug("Settings database setup complete.")
        except sqlite3.Error as e:
            self.logger.error(f"Settings database setup failed: {e}")
            raise

    @staticmethod
    def _check_key(key: str):
        if key not in DEFAULT_SETTINGS:
            raise SettingsError(f"Unknown setting '{key}'. Known settings: {', '.join(DEFAULT_SETTINGS)}")

    def get(self, key: str) -> str:
        """Get a stored setting, falling back to its default."""
        self._check_key(key)
        row = self.conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        if row is None:
            return DEFAULT_SETTINGS[key]
        value = row["value"]
        if is_encrypted(value):
            if self.cipher is None:
                raise SettingsError(f"Setting '{key}' is encrypted; set APP_FAIR_SECRET to read it")
            try:
                return self.cipher.decrypt(value)
            except ValueError as e:
                raise SettingsError(f"Setting '{key}': {e}")
        return value

    def set(self, key: str, value: str):
        """Store a setting, encrypting secrets when a cipher is configured."""
        self._check_key(key)
        if key in SECRET_KEYS and value:
            if self.cipher is not None:
                value = self.cipher.encrypt(value)
            else:
                self.logger.warning(f"Storing {key} unencrypted; set APP_FAIR_SECRET to encrypt it")
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT OR REPLACE INTO settings (key, value, updated_at) VALUES (?, ?, ?)",
                    (key, value, datetime.now().isoformat())
                )
            self.logger.info(f"Updated setting {key}")
        except sqlite3.Error as e:
            self.logger.error(f"Failed to update setting {key}: {e}")
            raise

    def unset(self, key: str):
        """Remove a stored setting so its default applies again."""
        self._check_key(key)
        with self.conn:
            self.conn.execute("DELETE FROM settings WHERE key = ?", (key,))
        self.logger.info(f"Reset setting {key} to default")

    def load_hub_settings(self) -> HubSettings:
        """Resolve hub settings: environment first, then stored values, then defaults."""
        values = {}
        for key, env_var in ENVIRONMENT_OVERRIDES.items():
            values[key] = os.environ.get(env_var) or self.get(key)
        return HubSettings(
            host=values["hub_host"],
            org=values["hub_org"],
            repo=values["hub_repo"],
            token=values["hub_token"] or None,
        )

    def get_favorites(self) -> List[int]:
        rows = self.conn.execute("SELECT release_id FROM favorites ORDER BY added_at").fetchall()
        return [row["release_id"] for row in rows]

    def add_favorite(self, release_id: int) -> bool:
        """Mark a release as favorite."""
        try:
            with self.conn:
                self.conn.execute(
                    "INSERT OR REPLACE INTO favorites (release_id, added_at) VALUES (?, ?)",
                    (release_id, datetime.now().isoformat())
                )
            self.logger.info(f"Added release {release_id} to favorites.")
            return True
        except sqlite3.Error as e:
            self.logger.error(f"Failed to add favorite {release_id}: {e}")
            return False

    def remove_favorite(self, release_id: int) -> bool:
        """Unmark a favorite release."""
        try:
            with self.conn:
                self.conn.execute("DELETE FROM favorites WHERE release_id = ?", (release_id,))
            self.logger.info(f"Removed release {release_id} from favorites.")
            return True
        except sqlite3.Error as e:
            self.logger.error(f"Failed to remove favorite {release_id}: {e}")
            return False


def get_settings_path() -> str:
    """
    Resolve the settings database path from APP_FAIR_DB_PATH, creating its directory.
    """
    logger = logging.getLogger(__name__)
    path = os.path.abspath(os.environ.get('APP_FAIR_DB_PATH', 'app_fair.db'))
    parent_dir = os.path.dirname(path) or "."
    try:
        os.makedirs(parent_dir, mode=0o755, exist_ok=True)
    except OSError as e:
        logger.warning(f"Settings directory {parent_dir} is not writable: {e}")
    return path


def get_settings_store(db_path: Optional[str] = None) -> SettingsStore:
    """Return a settings store for the configured path and secret."""
    return SettingsStore(db_path or get_settings_path(), get_token_cipher())
