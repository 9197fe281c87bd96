"""Inbound event handling and delivery target resolution.

The router never performs I/O. :meth:`MessageRouter.handle` turns one raw
frame from one connection into a list of :class:`Dispatch` values, each an
outbound event plus the connections that should receive it. The transport
layer sends them. Shared state is mutated before anything is sent, so a
connection that drops mid-delivery loses only its own responses.
"""
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple, Type, Union

from pydantic import ValidationError

from ..shared.dto import Message
from ..shared.utils import new_message_id, now_ms
from . import schemas
from .connections import ConnectionRegistry
from .conversations import ConversationStore
from .errors import (
    AlreadyAuthenticated,
    ChatError,
    EmptyMessage,
    MalformedFrame,
    NotAuthenticated,
    ServerError,
    UnknownRecipient,
)
from .identities import IdentityRegistry
from .logging_config import configure_logging

logger = configure_logging()


@dataclass(frozen=True)
class Dispatch:
    targets: Tuple[Hashable, ...]
    event: schemas.OutboundFrame


class MessageRouter:
    def __init__(
        self,
        identities: IdentityRegistry,
        conversations: ConversationStore,
        connections: ConnectionRegistry,
        announce_registrations: bool = True,
        broadcast_avatar_updates: bool = True,
    ):
        self.identities = identities
        self.conversations = conversations
        self.connections = connections
        self.announce_registrations = announce_registrations
        self.broadcast_avatar_updates = broadcast_avatar_updates
        self._handlers: Dict[Type, Callable[[Hashable, object], List[Dispatch]]] = {
            schemas.RegisterRequest: self._on_register,
            schemas.LoginRequest: self._on_login,
            schemas.SendMessageRequest: self._on_send_message,
            schemas.ChatHistoryRequest: self._on_chat_history,
            schemas.SetAvatarRequest: self._on_set_avatar,
            schemas.UserListRequest: self._on_user_list,
        }

    # connection lifecycle

    def connect(self, connection: Hashable) -> None:
        self.connections.open(connection)

    def disconnect(self, connection: Hashable) -> Optional[str]:
        return self.connections.unbind(connection)

    # frame handling

    @staticmethod
    def decode(raw: Union[str, bytes]) -> schemas.InboundFrame:
        try:
            return schemas.inbound_adapter.validate_json(raw)
        except ValidationError as exc:
            logger.info("MALFORMED_FRAME errors=%s", exc.error_count())
            raise MalformedFrame() from exc

    def handle(self, connection: Hashable, raw: Union[str, bytes]) -> List[Dispatch]:
        """Decode and dispatch one frame. Failures become an error for ``connection`` only."""
        try:
            return self.dispatch(connection, self.decode(raw))
        except ChatError as exc:
            return [self._error(connection, exc)]
        except Exception:
            logger.exception("HANDLER_CRASH connection=%s", connection)
            return [self._error(connection, ServerError())]

    def dispatch(self, connection: Hashable, event: schemas.InboundFrame) -> List[Dispatch]:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise MalformedFrame()
        return handler(connection, event)

    # handlers

    def _on_register(self, connection: Hashable, event: schemas.RegisterRequest) -> List[Dispatch]:
        self._require_connected(connection)
        user = self.identities.register(event.nickname, event.password)
        self.connections.bind(connection, user.nickname)
        result = [
            Dispatch((connection,), schemas.RegisteredEvent(nickname=user.nickname)),
            Dispatch((connection,), self._user_list(user.nickname)),
        ]
        if self.announce_registrations:
            others = self._connections_of(self.connections.authenticated(excluding=user.nickname).values())
            if others:
                announcement = schemas.NewUserEvent(user=schemas.UserOut.from_user(user, online=True))
                result.append(Dispatch(others, announcement))
        return result

    def _on_login(self, connection: Hashable, event: schemas.LoginRequest) -> List[Dispatch]:
        self._require_connected(connection)
        user = self.identities.login(event.nickname, event.password)
        self.connections.bind(connection, user.nickname)
        chats = [
            schemas.ChatSummary(peer=peer, last_message=schemas.MessageOut.from_message(message))
            for peer, message in self.conversations.summaries(user.nickname)
        ]
        return [
            Dispatch((connection,), schemas.LoggedInEvent(nickname=user.nickname, avatar=user.avatar)),
            Dispatch((connection,), self._user_list(user.nickname)),
            Dispatch((connection,), schemas.ChatListEvent(chats=chats)),
        ]

    def _on_send_message(self, connection: Hashable, event: schemas.SendMessageRequest) -> List[Dispatch]:
        sender = self._require_identity(connection)
        if not any((event.text, event.image, event.audio)):
            raise EmptyMessage()
        if not self.identities.exists(event.to):
            raise UnknownRecipient()

        message = Message(
            id=new_message_id(),
            sender=sender,
            recipient=event.to,
            text=event.text,
            image=event.image,
            audio=event.audio,
            created_at=now_ms(),
        )
        self.conversations.append(sender, event.to, message)

        targets = self.connections.connections_for(sender) | self.connections.connections_for(event.to)
        logger.info(
            "MESSAGE_SENT sender=%s recipient=%s message_id=%s deliveries=%s",
            sender,
            event.to,
            message.id,
            len(targets),
        )
        if not targets:
            return []
        return [Dispatch(tuple(targets), schemas.NewMessageEvent(message=schemas.MessageOut.from_message(message)))]

    def _on_chat_history(self, connection: Hashable, event: schemas.ChatHistoryRequest) -> List[Dispatch]:
        me = self._require_identity(connection)
        messages = [schemas.MessageOut.from_message(m) for m in self.conversations.history(me, event.peer)]
        return [Dispatch((connection,), schemas.ChatHistoryEvent(messages=messages, peer=event.peer))]

    def _on_set_avatar(self, connection: Hashable, event: schemas.SetAvatarRequest) -> List[Dispatch]:
        me = self._require_identity(connection)
        user = self.identities.set_avatar(me, event.avatar_url)
        logger.info("AVATAR_UPDATED nickname=%s", me)
        own = tuple(self.connections.connections_for(me)) or (connection,)
        result = [Dispatch(own, schemas.AvatarUpdatedEvent(avatar=user.avatar))]
        if self.broadcast_avatar_updates:
            for identity, connections in self.connections.authenticated(excluding=me).items():
                result.append(Dispatch(tuple(connections), self._user_list(identity)))
        return result

    def _on_user_list(self, connection: Hashable, event: schemas.UserListRequest) -> List[Dispatch]:
        return [Dispatch((connection,), self._user_list(self.connections.identity_for(connection)))]

    # helpers

    def _require_connected(self, connection: Hashable) -> None:
        if self.connections.identity_for(connection) is not None:
            raise AlreadyAuthenticated()

    def _require_identity(self, connection: Hashable) -> str:
        identity = self.connections.identity_for(connection)
        if identity is None:
            raise NotAuthenticated()
        return identity

    def _user_list(self, excluding: Optional[str]) -> schemas.UserListEvent:
        online = self.connections.online()
        users = [
            schemas.UserOut.from_user(user, online=user.nickname in online)
            for user in self.identities.profiles(excluding=excluding)
        ]
        return schemas.UserListEvent(users=users)

    @staticmethod
    def _connections_of(groups: Iterable[Iterable[Hashable]]) -> Tuple[Hashable, ...]:
        return tuple(connection for group in groups for connection in group)

    @staticmethod
    def _error(connection: Hashable, exc: ChatError) -> Dispatch:
        return Dispatch((connection,), schemas.ErrorEvent(message=exc.message, code=exc.code))
