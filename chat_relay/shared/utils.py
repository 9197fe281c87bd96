"""Shared utility functions."""
import time
import uuid
from typing import Optional

NICKNAME_MIN_LENGTH = 3
NICKNAME_MAX_LENGTH = 20


def normalize_nickname(nickname: str) -> str:
    return nickname.strip()


def is_nickname_valid(
    nickname: str, min_length: int = NICKNAME_MIN_LENGTH, max_length: int = NICKNAME_MAX_LENGTH
) -> bool:
    """Return True if the trimmed nickname is within the allowed length."""
    nickname = normalize_nickname(nickname)
    if not nickname:
        return False
    return min_length <= len(nickname) <= max_length


def normalize_credential(credential: Optional[str]) -> Optional[str]:
    """Treat a missing and an empty password the same way."""
    if not credential:
        return None
    return credential


def new_message_id() -> str:
    return uuid.uuid4().hex


def now_ms() -> int:
    return int(time.time() * 1000)
