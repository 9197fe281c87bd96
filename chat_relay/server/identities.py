"""Registered identities: nickname uniqueness, credentials and avatars."""
import threading
from typing import Dict, Iterable, List, Optional

from ..shared.dto import User
from ..shared.utils import is_nickname_valid, normalize_credential, normalize_nickname
from .credentials import CredentialHasher
from .errors import InvalidCredential, InvalidNickname, NicknameTaken, UserNotFound
from .logging_config import configure_logging

logger = configure_logging()


class IdentityRegistry:
    """Maps nickname -> :class:`User`.

    Users are kept in registration order and never removed. All access goes
    through ``lock``, which the engine shares with the conversation store so
    that a snapshot sees both in the same state.
    """

    def __init__(self, hasher: Optional[CredentialHasher] = None, lock: Optional[threading.RLock] = None):
        self.hasher = hasher or CredentialHasher()
        self.lock = lock or threading.RLock()
        self._users: Dict[str, User] = {}

    def register(self, nickname: str, credential: Optional[str]) -> User:
        nickname = normalize_nickname(nickname)
        if not is_nickname_valid(nickname):
            logger.info("REGISTER_FAIL nickname=%r reason=invalid_nickname", nickname)
            raise InvalidNickname()
        stored = self.hasher.hash(normalize_credential(credential))
        with self.lock:
            if nickname in self._users:
                logger.info("REGISTER_FAIL nickname=%s reason=taken", nickname)
                raise NicknameTaken()
            user = User(nickname=nickname, credential=stored, avatar=None)
            self._users[nickname] = user
        logger.info("REGISTER_SUCCESS nickname=%s", nickname)
        return user.copy()

    def login(self, nickname: str, credential: Optional[str]) -> User:
        nickname = normalize_nickname(nickname)
        with self.lock:
            user = self._users.get(nickname)
            stored = user.credential if user else None
        if user is None:
            logger.info("LOGIN_FAIL nickname=%s reason=not_found", nickname)
            raise UserNotFound()
        if not self.hasher.verify(normalize_credential(credential), stored):
            logger.info("LOGIN_FAIL nickname=%s reason=bad_password", nickname)
            raise InvalidCredential()
        logger.info("LOGIN_SUCCESS nickname=%s", nickname)
        return self.get(nickname)

    def set_avatar(self, nickname: str, avatar: Optional[str]) -> User:
        with self.lock:
            user = self._users.get(nickname)
            if user is None:
                raise UserNotFound()
            user.avatar = avatar
            return user.copy()

    def get(self, nickname: str) -> Optional[User]:
        with self.lock:
            user = self._users.get(nickname)
            return user.copy() if user else None

    def exists(self, nickname: str) -> bool:
        with self.lock:
            return nickname in self._users

    def list(self, excluding: Optional[str] = None) -> List[str]:
        with self.lock:
            return [nickname for nickname in self._users if nickname != excluding]

    def profiles(self, excluding: Optional[str] = None) -> List[User]:
        with self.lock:
            return [user.copy() for nickname, user in self._users.items() if nickname != excluding]

    def __len__(self) -> int:
        with self.lock:
            return len(self._users)

    def snapshot(self) -> List[User]:
        with self.lock:
            return [user.copy() for user in self._users.values()]

    def restore(self, users: Iterable[User]) -> None:
        with self.lock:
            self._users = {user.nickname: user.copy() for user in users}
