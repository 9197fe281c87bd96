"""Shared data transfer object helpers."""
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple


@dataclass
class User:
    nickname: str
    credential: Optional[str] = None
    avatar: Optional[str] = None

    def copy(self) -> "User":
        return replace(self)


@dataclass(frozen=True)
class Message:
    id: str
    sender: str
    recipient: str
    text: Optional[str]
    image: Optional[str]
    audio: Optional[str]
    created_at: int


ConversationKey = Tuple[str, str]


@dataclass
class Snapshot:
    """Point-in-time copy of every user and conversation window."""

    users: List[User] = field(default_factory=list)
    conversations: Dict[ConversationKey, List[Message]] = field(default_factory=dict)

    @property
    def message_count(self) -> int:
        return sum(len(messages) for messages in self.conversations.values())
