"""Bounded per-pair message history."""
import threading
from collections import deque
from typing import Deque, Dict, Iterable, List, Mapping, Optional, Tuple

from ..shared.dto import ConversationKey, Message

HISTORY_LIMIT = 20


def conversation_key(a: str, b: str) -> ConversationKey:
    """Canonical key for the unordered pair {a, b}."""
    first, second = sorted((a, b))
    return first, second


class ConversationStore:
    """Keeps the most recent ``limit`` messages of every conversation.

    Each conversation is stored once under its sorted pair; appends past the
    limit drop the oldest messages.
    """

    def __init__(self, limit: int = HISTORY_LIMIT, lock: Optional[threading.RLock] = None):
        if limit < 1:
            raise ValueError("limit must be positive")
        self.limit = limit
        self.lock = lock or threading.RLock()
        self._conversations: Dict[ConversationKey, Deque[Message]] = {}

    def append(self, a: str, b: str, message: Message) -> List[Message]:
        key = conversation_key(a, b)
        with self.lock:
            window = self._conversations.get(key)
            if window is None:
                window = self._conversations[key] = deque(maxlen=self.limit)
            window.append(message)
            return list(window)

    def history(self, a: str, b: str) -> List[Message]:
        with self.lock:
            return list(self._conversations.get(conversation_key(a, b), ()))

    def summaries(self, nickname: str) -> List[Tuple[str, Message]]:
        """(peer, last message) for every conversation involving ``nickname``, newest first."""
        with self.lock:
            result = []
            for (first, second), window in self._conversations.items():
                if nickname not in (first, second) or not window:
                    continue
                peer = second if first == nickname else first
                result.append((peer, window[-1]))
        result.sort(key=lambda item: item[1].created_at, reverse=True)
        return result

    def __len__(self) -> int:
        with self.lock:
            return len(self._conversations)

    def snapshot(self) -> Dict[ConversationKey, List[Message]]:
        with self.lock:
            return {key: list(window) for key, window in self._conversations.items()}

    def restore(self, conversations: Mapping[ConversationKey, Iterable[Message]]) -> None:
        restored = {}
        for (a, b), messages in conversations.items():
            restored[conversation_key(a, b)] = deque(messages, maxlen=self.limit)
        with self.lock:
            self._conversations = restored
