import hashlib
import logging
import secrets
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from passlib.hash import pbkdf2_sha256

from .errors import AuthenticationError

logger = logging.getLogger(__name__)


@dataclass
class UserRecord:
    username: str
    is_active: bool
    created_at: str


@dataclass
class SessionRecord:
    token_prefix: str
    username: str
    created_at: str


class CredentialStore:
    """
    Manages FileIt users and login sessions using a local SQLite database.

    Passwords are stored as passlib PBKDF2-SHA256 hashes; session tokens are
    stored as SHA-256 hashes and the raw token is only returned once, at login.
    """

    def __init__(self, db_path: str = "data/fileit.db"):
        self.db_path = Path(db_path)
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        """Initialize the database schema if it doesn't exist."""
        with self._get_conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    username TEXT PRIMARY KEY,
                    password_hash TEXT NOT NULL,
                    is_active BOOLEAN DEFAULT 1,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    token_hash TEXT PRIMARY KEY,
                    prefix TEXT NOT NULL,
                    username TEXT NOT NULL REFERENCES users(username),
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.commit()

    def _hash_token(self, token: str) -> str:
        """SHA-256 hash of a session token."""
        return hashlib.sha256(token.encode()).hexdigest()

    def add_user(self, username: str, password: str) -> UserRecord:
        """Create a user, or reset the password of an existing one."""
        if not username or not password:
            raise ValueError("username and password are required")

        created_at = datetime.utcnow().isoformat()
        with self._get_conn() as conn:
            conn.execute("""
                INSERT INTO users (username, password_hash, is_active, created_at)
                VALUES (?, ?, 1, ?)
                ON CONFLICT(username) DO UPDATE SET
                    password_hash = excluded.password_hash,
                    is_active = 1
            """, (username, pbkdf2_sha256.hash(password), created_at))
            conn.commit()
        logger.info(f"Stored credentials for user '{username}'")
        return UserRecord(username=username, is_active=True, created_at=created_at)

    def check_credentials(self, username: str, password: str) -> UserRecord:
        """
        Verify a username/password pair.

        Raises:
            AuthenticationError: If the user is unknown, inactive or the password is wrong
        """
        with self._get_conn() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ? AND is_active = 1",
                (username,)
            ).fetchone()

        if row is None or not pbkdf2_sha256.verify(password, row["password_hash"]):
            logger.warning(f"Login failed for user '{username}'")
            raise AuthenticationError("Login Failed")

        return UserRecord(username=row["username"], is_active=True, created_at=row["created_at"])

    def login(self, username: str, password: str) -> Tuple[str, SessionRecord]:
        """
        Check credentials and open a session.

        Returns:
            Tuple[str, SessionRecord]: (raw_token, session_record)
            The raw token is shown ONLY ONCE here.
        """
        self.check_credentials(username, password)

        raw_token = f"fit_{secrets.token_urlsafe(32)}"
        prefix = raw_token[:8]
        created_at = datetime.utcnow().isoformat()
        with self._get_conn() as conn:
            conn.execute(
                "INSERT INTO sessions (token_hash, prefix, username, created_at) VALUES (?, ?, ?, ?)",
                (self._hash_token(raw_token), prefix, username, created_at)
            )
            conn.commit()
        return raw_token, SessionRecord(token_prefix=prefix, username=username, created_at=created_at)

    def validate_token(self, token: str) -> Optional[SessionRecord]:
        """Return the session for ``token`` if it belongs to an active user."""
        if not token:
            return None

        with self._get_conn() as conn:
            row = conn.execute("""
                SELECT s.prefix, s.username, s.created_at FROM sessions s
                JOIN users u ON u.username = s.username
                WHERE s.token_hash = ? AND u.is_active = 1
            """, (self._hash_token(token),)).fetchone()

        if row:
            return SessionRecord(token_prefix=row["prefix"], username=row["username"], created_at=row["created_at"])
        return None

    def revoke_token(self, token: str) -> bool:
        with self._get_conn() as conn:
            cursor = conn.execute("DELETE FROM sessions WHERE token_hash = ?", (self._hash_token(token),))
            conn.commit()
            return cursor.rowcount > 0

    def remove_user(self, username: str) -> bool:
        """Deactivate a user; their sessions stop validating immediately."""
        with self._get_conn() as conn:
            cursor = conn.execute("UPDATE users SET is_active = 0 WHERE username = ?", (username,))
            conn.commit()
            return cursor.rowcount > 0

    def list_users(self) -> list[dict]:
        with self._get_conn() as conn:
            rows = conn.execute(
                "SELECT username, is_active, created_at FROM users ORDER BY created_at DESC"
            ).fetchall()
            return [dict(row) for row in rows]
