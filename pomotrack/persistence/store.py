"""SQLite-backed key-value persistence for projects, sessions and settings."""

import json
import logging
import os
import sqlite3
from typing import Any, Optional

from pomotrack.core.models import Project, Session

logger = logging.getLogger(__name__)

# Logical keys
PROJECTS_KEY = "projects"
SESSIONS_KEY = "sessions"
RECOVERY_KEY = "recovery"
AI_PROVIDER_KEY = "ai_provider"
AI_MODEL_KEY = "ai_model"
AI_KEY_PREFIX = "ai_key_"


class LocalStore:
    """Read/write interface to the local SQLite database.

    Values are stored as JSON text in a single ``kv`` table.  Writes are
    committed before ``save`` returns.  Durability is best-effort: a failed
    write is logged and swallowed, and a failed or missing read yields the
    caller's default.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn: Optional[sqlite3.Connection] = None

    # ------------------------------------------------------------------
    # Connection helpers
    # ------------------------------------------------------------------

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            if self.db_path != ":memory:":
                # Credentials live in this file; keep it private to the user.
                try:
                    os.chmod(self.db_path, 0o600)
                except OSError:
                    logger.debug("Could not restrict permissions on %s", self.db_path)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    # ------------------------------------------------------------------
    # Schema initialisation
    # ------------------------------------------------------------------

    def init_db(self) -> None:
        """Create the key-value table if it doesn't already exist."""
        conn = self._get_conn()
        conn.executescript(
            """\
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
            );
            """
        )
        conn.commit()

    # ------------------------------------------------------------------
    # Key-value operations
    # ------------------------------------------------------------------

    def save(self, key: str, value: Any) -> bool:
        """Persist a JSON-serializable *value* under *key* (upsert).

        Returns ``True`` on success.  Errors are logged, never raised.
        """
        try:
            payload = json.dumps(value, ensure_ascii=False)
            conn = self._get_conn()
            conn.execute(
                """\
                INSERT OR REPLACE INTO kv (key, value, updated_at)
                VALUES (?, ?, strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
                """,
                (key, payload),
            )
            conn.commit()
            return True
        except (TypeError, ValueError, sqlite3.Error) as exc:
            logger.warning("Storage save error for %r: %s", key, exc)
            return False

    def load(self, key: str, default: Any = None) -> Any:
        """Return the value saved under *key*, or *default* if absent or unreadable."""
        try:
            row = self._get_conn().execute(
                "SELECT value FROM kv WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as exc:
            logger.warning("Storage load error for %r: %s", key, exc)
            return default
        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except ValueError:
            logger.warning("Discarding unreadable value stored under %r", key)
            return default

    def delete(self, key: str) -> None:
        """Remove *key* if present.  Errors are logged, never raised."""
        try:
            conn = self._get_conn()
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as exc:
            logger.warning("Storage delete error for %r: %s", key, exc)

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    def save_projects(self, projects: list[Project]) -> bool:
        ok = self.save(PROJECTS_KEY, [p.to_dict() for p in projects])
        logger.debug("Projects saved, count: %d", len(projects))
        return ok

    def load_projects(self, default: Optional[list[Project]] = None) -> list[Project]:
        raw = self.load(PROJECTS_KEY, None)
        if raw is None:
            return list(default or [])
        return _parse_list(raw, Project.from_dict, "project")

    def save_sessions(self, sessions: list[Session]) -> bool:
        ok = self.save(SESSIONS_KEY, [s.to_dict() for s in sessions])
        logger.debug("Sessions saved, count: %d", len(sessions))
        return ok

    def load_sessions(self) -> list[Session]:
        return _parse_list(self.load(SESSIONS_KEY, []), Session.from_dict, "session")


def _parse_list(raw: Any, parse, kind: str) -> list:
    """Parse each entry of *raw*, skipping (and logging) malformed ones."""
    items = []
    if not isinstance(raw, list):
        logger.warning("Stored %s list is not a list; ignoring", kind)
        return items
    for entry in raw:
        try:
            items.append(parse(entry))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping malformed stored %s: %s", kind, exc)
    return items


class CredentialStore:
    """Per-provider AI credentials and the last used provider/model.

    A key saved for one provider is only ever handed back for that
    provider; callers send it nowhere else.
    """

    def __init__(self, store: LocalStore) -> None:
        self.store = store

    def get_key(self, provider: str) -> str:
        return self.store.load(f"{AI_KEY_PREFIX}{provider}", "") or ""

    def set_key(self, provider: str, api_key: str) -> None:
        api_key = api_key.strip()
        if not api_key:
            self.store.delete(f"{AI_KEY_PREFIX}{provider}")
            return
        self.store.save(f"{AI_KEY_PREFIX}{provider}", api_key)

    def get_selection(self, default_provider: str = "anthropic") -> tuple[str, str]:
        """Return the saved ``(provider, model)``; model may be empty."""
        provider = self.store.load(AI_PROVIDER_KEY, default_provider) or default_provider
        model = self.store.load(AI_MODEL_KEY, "") or ""
        return provider, model

    def set_selection(self, provider: str, model: str) -> None:
        self.store.save(AI_PROVIDER_KEY, provider)
        self.store.save(AI_MODEL_KEY, model)
