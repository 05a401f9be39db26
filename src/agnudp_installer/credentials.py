"""
사용자 DB 모듈
udpusers.db 생성 및 기본 계정 등록 (idempotent)
"""

import os
import sqlite3
from contextlib import closing
from typing import List, Optional
from .errors import DuplicateAccountIgnored, StoreCreationError
from .interfaces import KeyValueAccountStore
from .logger import get_logger


SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    username TEXT PRIMARY KEY,
    password TEXT NOT NULL
)
"""


class SqliteAccountStore:
    """SQLite 기반 사용자 저장소"""

    def __init__(self, path: str, timeout: float = 10.0):
        self.path = path
        self.timeout = timeout
        self.logger = get_logger()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.path, timeout=self.timeout)

    def ensure_store(self):
        """DB 파일과 users 테이블 생성"""
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with closing(self._connect()) as conn:
                with conn:
                    conn.execute(SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise StoreCreationError(f"Unable to create database file at {self.path}: {e}") from e
        self.logger.debug(f"User database ready: {self.path}")

    def add_account(self, username: str, password: str):
        """계정 추가. 이미 존재하면 DuplicateAccountIgnored"""
        if not username:
            raise ValueError("username must not be empty")

        try:
            with closing(self._connect()) as conn:
                with conn:
                    cursor = conn.execute(
                        "INSERT INTO users (username, password) VALUES (?, ?) "
                        "ON CONFLICT(username) DO NOTHING",
                        (username, password),
                    )
                    inserted = cursor.rowcount
        except sqlite3.IntegrityError as e:
            raise DuplicateAccountIgnored(username) from e

        if inserted == 0:
            raise DuplicateAccountIgnored(username)

    def get_password(self, username: str) -> Optional[str]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT password FROM users WHERE username = ?", (username,)
            ).fetchone()
        return row[0] if row else None

    def usernames(self) -> List[str]:
        with closing(self._connect()) as conn:
            rows = conn.execute("SELECT username FROM users ORDER BY username").fetchall()
        return [row[0] for row in rows]

    def count(self) -> int:
        with closing(self._connect()) as conn:
            return conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]


class CredentialBootstrapper:
    """사용자 DB 초기화 및 기본 계정 생성"""

    def __init__(self, store: KeyValueAccountStore):
        self.store = store
        self.logger = get_logger()

    def ensure_store(self):
        self.logger.info("Setting up database")
        self.store.ensure_store()

    def ensure_default_account(self, username: str, password: str) -> bool:
        """기본 계정 생성. 새로 만들었으면 True"""
        try:
            self.store.add_account(username, password)
        except DuplicateAccountIgnored:
            self.logger.info(f"Default user '{username}' already exists.")
            return False

        self.logger.info(f"Default user '{username}' created successfully.")
        return True
