"""Credential checks and first-login registration against the profile store."""
from __future__ import annotations

import logging
from typing import Optional

import bcrypt

from interview.types import Credentials, UserProfile
from storage.profiles import ProfileStore

logger = logging.getLogger(__name__)


def hash_password(plain: str) -> str:
    if not isinstance(plain, str) or not plain:
        raise ValueError("Password must be non-empty string")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def login(store: ProfileStore, username: str, password: str) -> Optional[UserProfile]:
    """Return the user's profile, registering unknown usernames on first login.

    Returns None when the password does not match an existing account or when
    either field is blank.
    """

    name = (username or "").strip()
    if not name or not password:
        return None
    profile = store.get(name)
    if profile is None:
        profile = UserProfile(username=name, credentials=Credentials(password_hash=hash_password(password)))
        store.put(name, profile)
        logger.info("Registered new user=%s", name)
        return profile
    if profile.credentials is None or not verify_password(password, profile.credentials.password_hash):
        logger.warning("Rejected login for user=%s", name)
        return None
    return profile


__all__ = ["hash_password", "verify_password", "login"]
