"""Password hashing (bcrypt). Callers only ever compare, never decode."""

from __future__ import annotations

import logging
from functools import lru_cache

import bcrypt

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        logger.warning("Password verification failed: malformed hash")
        return False


@lru_cache
def dummy_password_hash(rounds: int = 12) -> str:
    """A throwaway hash to compare against when no account matched, so both paths cost one bcrypt check."""
    return hash_password("civigest-no-such-account", rounds=rounds)
