"""
Local persistence for users, projects and notes.

Records are JSON documents in a single SQLite table, addressed by
(namespace, key). An optional owner column indexes records by the user or
project they belong to, so listing a user's projects does not scan every record.
Writes are last-write-wins; there is no transaction spanning several records.
"""

import json
import sqlite3
from pathlib import Path
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from .errors import AuthError
from .logging import get_logger
from .models import Note, Project, User, new_id

logger = get_logger(__name__)

USERS = "users"
PROJECTS = "projects"
NOTES = "notes"
SESSION = "session"
CURRENT_USER_KEY = "current_user"


class KeyValueStore:
    """SQLite-backed namespaced key-value store."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Initialize database schema."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    owner TEXT,
                    value TEXT NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_namespace_owner
                ON records(namespace, owner)
            """)
            conn.commit()

    def put(self, namespace: str, key: str, value: dict, owner: Optional[str] = None):
        """Insert or overwrite a record. Overwrites keep the original insertion position."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                INSERT INTO records (namespace, key, owner, value)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(namespace, key)
                DO UPDATE SET owner = excluded.owner, value = excluded.value
            """, (namespace, key, owner, json.dumps(value)))
            conn.commit()

    def get(self, namespace: str, key: str) -> Optional[dict]:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM records WHERE namespace = ? AND key = ?",
                (namespace, key),
            ).fetchone()
        return json.loads(row[0]) if row else None

    def delete(self, namespace: str, key: str) -> bool:
        """Remove a record. Returns False if it did not exist."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute(
                "DELETE FROM records WHERE namespace = ? AND key = ?",
                (namespace, key),
            )
            conn.commit()
            return cursor.rowcount > 0

    def values(self, namespace: str, owner: Optional[str] = None) -> list[dict]:
        """All records in a namespace, in insertion order, optionally for one owner."""
        query = "SELECT value FROM records WHERE namespace = ?"
        params: list = [namespace]
        if owner is not None:
            query += " AND owner = ?"
            params.append(owner)
        query += " ORDER BY rowid"

        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(query, params).fetchall()
        return [json.loads(row[0]) for row in rows]


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class Storage:
    """
    Persistence contract used by the view controller.

    Every call is synchronous. The remembered session (who is logged in) is
    stored alongside the data so that a restarted app resumes where it was.
    """

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    @classmethod
    def open(cls, db_path: Path) -> "Storage":
        return cls(KeyValueStore(db_path))

    # --- users & session ---

    def get_current_user(self) -> Optional[User]:
        session = self.kv.get(SESSION, CURRENT_USER_KEY)
        if not session:
            return None
        record = self.kv.get(USERS, session["user_id"])
        if record is None:
            # Remembered user no longer exists
            self.kv.delete(SESSION, CURRENT_USER_KEY)
            return None
        return User.from_dict(record)

    def _find_user_record(self, email: str) -> Optional[dict]:
        matches = self.kv.values(USERS, owner=email)
        return matches[0] if matches else None

    def login_user(self, email: str, password: str) -> User:
        email = normalize_email(email)
        record = self._find_user_record(email)
        if record is None or not check_password_hash(record["password_hash"], password or ""):
            raise AuthError("Invalid email or password")

        self.kv.put(SESSION, CURRENT_USER_KEY, {"user_id": record["id"]})
        logger.info("User logged in: %s", email)
        return User.from_dict(record)

    def register_user(self, email: str, password: str) -> User:
        email = normalize_email(email)
        if not email or not password:
            raise AuthError("Email and password are required")
        if self._find_user_record(email) is not None:
            raise AuthError("User already exists")

        user = User(id=new_id(), email=email, name=email.split("@")[0])
        record = user.to_dict()
        record["password_hash"] = generate_password_hash(password)
        self.kv.put(USERS, user.id, record, owner=email)
        self.kv.put(SESSION, CURRENT_USER_KEY, {"user_id": user.id})
        logger.info("Registered user: %s", email)
        return user

    def logout_user(self):
        self.kv.delete(SESSION, CURRENT_USER_KEY)

    # --- projects ---

    def get_projects(self, user_id: str) -> list[Project]:
        return [Project.from_dict(d) for d in self.kv.values(PROJECTS, owner=user_id)]

    def get_project(self, project_id: str) -> Optional[Project]:
        record = self.kv.get(PROJECTS, project_id)
        return Project.from_dict(record) if record else None

    def save_project(self, project: Project):
        self.kv.put(PROJECTS, project.id, project.to_dict(), owner=project.user_id)

    def delete_project(self, project_id: str):
        """Remove a project. Its notes are left in place."""
        self.kv.delete(PROJECTS, project_id)

    # --- notes ---

    def get_notes(self, project_id: str) -> list[Note]:
        return [Note.from_dict(d) for d in self.kv.values(NOTES, owner=project_id)]

    def save_note(self, note: Note):
        self.kv.put(NOTES, note.id, note.to_dict(), owner=note.project_id)

    def delete_note(self, note_id: str):
        self.kv.delete(NOTES, note_id)
