"""Profile store contract and its in-memory and SQLite implementations."""
from __future__ import annotations

import datetime as dt
import sqlite3
from threading import RLock
from typing import Callable, Dict, Optional, Protocol, TypeVar

from interview.types import UserProfile

from .migrate import migrate
from .sqlite import get_conn

T = TypeVar("T")

# Failures a backing store may raise on read or write.
STORE_ERRORS = (OSError, sqlite3.Error)


class ProfileStore(Protocol):  # Key-value persistence of one record per user
    def get(self, username: str) -> Optional[UserProfile]: ...

    def put(self, username: str, profile: UserProfile) -> None: ...


class InMemoryProfileStore:  # Thread-safe in-memory store
    def __init__(self) -> None:
        self._profiles: Dict[str, str] = {}
        self._lock = RLock()

    def get(self, username: str) -> Optional[UserProfile]:
        with self._lock:
            stored = self._profiles.get(username)
        if stored is None:
            return None
        return UserProfile.model_validate_json(stored)

    def put(self, username: str, profile: UserProfile) -> None:
        # Serialized copy; callers never hold the stored record.
        with self._lock:
            self._profiles[username] = profile.model_dump_json()


class SqliteProfileStore:  # One JSON document per user in the profiles table
    def __init__(self, db_path: Optional[str] = None) -> None:
        self._db_path = db_path
        migrate(db_path)

    def get(self, username: str) -> Optional[UserProfile]:
        with get_conn(self._db_path) as conn:
            row = conn.execute("SELECT payload FROM profiles WHERE username=?", (username,)).fetchone()
        if row is None:
            return None
        return UserProfile.model_validate_json(row[0])

    def put(self, username: str, profile: UserProfile) -> None:
        timestamp = dt.datetime.now(dt.timezone.utc).isoformat()
        with get_conn(self._db_path) as conn:
            conn.execute(
                """INSERT INTO profiles (username, payload, updated_at)
                   VALUES (?, ?, ?)
                   ON CONFLICT(username) DO UPDATE SET payload=excluded.payload, updated_at=excluded.updated_at""",
                (username, profile.model_dump_json(), timestamp),
            )


_UPDATE_LOCK = RLock()


def update_profile(store: ProfileStore, username: str, mutate: Callable[[UserProfile], T]) -> T:
    """Read-modify-write one user's full record and return ``mutate``'s result.

    Raises:
        KeyError: If ``username`` has no stored profile.
    """

    with _UPDATE_LOCK:
        profile = store.get(username)
        if profile is None:
            raise KeyError(username)
        result = mutate(profile)
        store.put(username, profile)
    return result


__all__ = ["STORE_ERRORS", "ProfileStore", "InMemoryProfileStore", "SqliteProfileStore", "update_profile"]
