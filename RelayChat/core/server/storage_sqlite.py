"""Credential storage for RelayChat.

Accounts map a login and a password to the nickname shown in the chat.
Passwords are kept as bcrypt hashes only.

Two implementations share the CredentialStore contract:
  - SQLiteCredentialStore: stdlib sqlite3 file, guarded by a lock so the
    server can call it from any task or thread
  - InMemoryCredentialStore: dict-backed, for development and tests

The DB file location is controlled by Config.SQLITE_DB_FILE.
"""

from __future__ import annotations

import sqlite3
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import bcrypt

from RelayChat.core.logging import get_logger
from RelayChat.core.message.protocol import DELIMITER
from RelayChat.core.server.exceptions import CredentialStoreError, ProtocolError

logger = get_logger(__name__)


SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS users (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  login TEXT UNIQUE NOT NULL,
  password_hash TEXT NOT NULL,
  nickname TEXT UNIQUE NOT NULL,
  created_at REAL NOT NULL
);
"""


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash password with bcrypt (rounds=10 for performance)."""
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), hashed_password.encode('utf-8'))
    except ValueError:
        # Malformed hash in storage
        return False


def check_account_fields(login: str, nickname: str) -> None:
    """Refuse logins and nicknames the wire format cannot carry."""
    for name, value in (("login", login), ("nickname", nickname)):
        if not value or DELIMITER in value:
            raise ProtocolError(f"Invalid {name}", {name: value, "delimiter": DELIMITER})


@dataclass(frozen=True)
class UserRow:
    id: int
    login: str
    nickname: str
    created_at: float


class SQLiteCredentialStore:
    """A tiny SQLite-backed credential store."""

    def __init__(self, db_path: str, hash_rounds: int = 10):
        self.db_path = str(Path(db_path))
        self._hash_rounds = hash_rounds
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def connect(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            try:
                self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
                self._conn.row_factory = sqlite3.Row
                self._conn.executescript(SCHEMA_SQL)
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn = None
                raise CredentialStoreError(
                    "Cannot open credential database", {"path": self.db_path, "error": str(e)}
                ) from e
        logger.info("Credential store opened: %s", self.db_path)

    def disconnect(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
        logger.info("Credential store closed: %s", self.db_path)

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise CredentialStoreError("Credential store is not connected", {"path": self.db_path})
        return self._conn

    # --------------------------- lookups ---------------------------
    def lookup_nickname(self, login: str, password: str) -> Optional[str]:
        with self._lock:
            cur = self._require_conn().execute(
                "SELECT password_hash, nickname FROM users WHERE login=?", (login,)
            )
            row = cur.fetchone()
        if row is None:
            return None
        if not verify_password(password, row["password_hash"]):
            return None
        return row["nickname"]

    def user_exists(self, login: str) -> bool:
        with self._lock:
            cur = self._require_conn().execute("SELECT 1 FROM users WHERE login=?", (login,))
            return cur.fetchone() is not None

    def list_users(self) -> List[UserRow]:
        with self._lock:
            cur = self._require_conn().execute(
                "SELECT id, login, nickname, created_at FROM users ORDER BY id"
            )
            rows = cur.fetchall()
        return [
            UserRow(
                id=int(r["id"]),
                login=r["login"],
                nickname=r["nickname"],
                created_at=float(r["created_at"]),
            )
            for r in rows
        ]

    # --------------------------- accounts ---------------------------
    def add_user(self, login: str, password: str, nickname: str) -> bool:
        """
        Register an account.

        Returns:
            False if the login or the nickname is already taken

        Raises:
            ProtocolError: if the login or the nickname is empty or holds the delimiter
        """
        check_account_fields(login, nickname)
        password_hash = hash_password(password, self._hash_rounds)
        now = time.time()
        with self._lock:
            conn = self._require_conn()
            try:
                conn.execute(
                    "INSERT INTO users(login, password_hash, nickname, created_at) VALUES(?,?,?,?)",
                    (login, password_hash, nickname, now),
                )
                conn.commit()
                return True
            except sqlite3.IntegrityError:
                return False

    def remove_user(self, login: str) -> bool:
        with self._lock:
            conn = self._require_conn()
            cur = conn.execute("DELETE FROM users WHERE login=?", (login,))
            conn.commit()
            return cur.rowcount > 0


class InMemoryCredentialStore:
    """
    In-memory credential store implementation.

    Accepts plain ``{login: (password, nickname)}`` accounts and hashes the
    passwords on construction.
    """

    def __init__(self, accounts: Optional[Dict[str, Tuple[str, str]]] = None, hash_rounds: int = 4):
        self._hash_rounds = hash_rounds
        self._accounts: Dict[str, Tuple[str, str]] = {}
        self._connected = False
        for login, (password, nickname) in (accounts or {}).items():
            self.add_user(login, password, nickname)

    @property
    def is_connected(self) -> bool:
        return self._connected

    def connect(self) -> None:
        self._connected = True

    def disconnect(self) -> None:
        self._connected = False

    def add_user(self, login: str, password: str, nickname: str) -> bool:
        check_account_fields(login, nickname)
        if login in self._accounts:
            return False
        if any(nick == nickname for _, nick in self._accounts.values()):
            return False
        self._accounts[login] = (hash_password(password, self._hash_rounds), nickname)
        return True

    def lookup_nickname(self, login: str, password: str) -> Optional[str]:
        if not self._connected:
            raise CredentialStoreError("Credential store is not connected")
        account = self._accounts.get(login)
        if account is None:
            return None
        password_hash, nickname = account
        return nickname if verify_password(password, password_hash) else None
