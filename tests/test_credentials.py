"""
사용자 DB 모듈 테스트
"""

import os
import sqlite3
import stat
import pytest
from agnudp_installer.credentials import CredentialBootstrapper, SqliteAccountStore
from agnudp_installer.errors import DuplicateAccountIgnored, StoreCreationError


@pytest.fixture
def store(tmp_path):
    store = SqliteAccountStore(str(tmp_path / "hysteria" / "udpusers.db"))
    store.ensure_store()
    return store


def test_ensure_store_creates_users_table(store):
    with sqlite3.connect(store.path) as conn:
        columns = conn.execute("PRAGMA table_info(users)").fetchall()

    names = {column[1]: column for column in columns}
    assert set(names) == {"username", "password"}
    assert names["username"][5] == 1  # primary key
    assert names["password"][3] == 1  # not null


def test_ensure_store_twice_keeps_data(store):
    store.add_account("alice", "pw")
    store.ensure_store()

    assert store.get_password("alice") == "pw"


def test_ensure_default_account_twice_creates_one_row(store):
    bootstrapper = CredentialBootstrapper(store)

    assert bootstrapper.ensure_default_account("default", "password") is True
    assert bootstrapper.ensure_default_account("default", "password") is False
    assert store.usernames() == ["default"]
    assert store.count() == 1


def test_second_password_for_same_user_is_ignored(store):
    store.add_account("default", "first")

    with pytest.raises(DuplicateAccountIgnored):
        store.add_account("default", "second")

    assert store.get_password("default") == "first"
    with sqlite3.connect(store.path) as conn:
        rows = conn.execute("SELECT COUNT(*) FROM users WHERE username = 'default'").fetchone()[0]
    assert rows == 1


def test_bootstrapper_does_not_touch_existing_account(store):
    store.add_account("default", "changed-by-operator")

    CredentialBootstrapper(store).ensure_default_account("default", "password")

    assert store.get_password("default") == "changed-by-operator"


def test_integrity_error_is_treated_as_duplicate(store, monkeypatch):
    """동시 실행 중 다른 프로세스가 먼저 삽입한 경우"""

    class RacingConnection:
        def __init__(self, *args, **kwargs):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def execute(self, *args):
            raise sqlite3.IntegrityError("UNIQUE constraint failed: users.username")

        def close(self):
            pass

    monkeypatch.setattr(store, "_connect", lambda: RacingConnection())

    assert CredentialBootstrapper(store).ensure_default_account("default", "password") is False


def test_empty_username_rejected(store):
    with pytest.raises(ValueError):
        store.add_account("", "pw")


def test_missing_account_returns_none(store):
    assert store.get_password("nobody") is None


@pytest.mark.skipif(os.geteuid() == 0, reason="root ignores directory permissions")
def test_unwritable_path_raises_store_creation_error(tmp_path):
    locked = tmp_path / "locked"
    locked.mkdir()
    locked.chmod(stat.S_IRUSR | stat.S_IXUSR)
    try:
        with pytest.raises(StoreCreationError):
            SqliteAccountStore(str(locked / "udpusers.db")).ensure_store()
    finally:
        locked.chmod(stat.S_IRWXU)


def test_path_under_regular_file_raises_store_creation_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x")

    with pytest.raises(StoreCreationError):
        SqliteAccountStore(str(blocker / "udpusers.db")).ensure_store()
