"""Pydantic schemas for WebSocket frames and HTTP responses."""
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ..shared.dto import Message, User


class InboundFrame(BaseModel):
    model_config = ConfigDict(extra="forbid")


class RegisterRequest(InboundFrame):
    type: Literal["register"]
    nickname: str
    password: Optional[str] = None


class LoginRequest(InboundFrame):
    type: Literal["login"]
    nickname: str
    password: Optional[str] = None


class SendMessageRequest(InboundFrame):
    type: Literal["sendMessage"]
    to: str
    text: Optional[str] = None
    image: Optional[str] = None
    audio: Optional[str] = None


class ChatHistoryRequest(InboundFrame):
    type: Literal["getChatHistory"]
    peer: str = Field(alias="with")


class SetAvatarRequest(InboundFrame):
    type: Literal["setAvatar"]
    avatar_url: Optional[str] = Field(alias="avatarUrl")


class UserListRequest(InboundFrame):
    type: Literal["getUserList"]


InboundEvent = Annotated[
    Union[
        RegisterRequest,
        LoginRequest,
        SendMessageRequest,
        ChatHistoryRequest,
        SetAvatarRequest,
        UserListRequest,
    ],
    Field(discriminator="type"),
]

inbound_adapter: TypeAdapter = TypeAdapter(InboundEvent)


class OutboundFrame(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class MessageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    sender: str = Field(alias="from")
    recipient: str = Field(alias="to")
    text: Optional[str] = None
    image: Optional[str] = None
    audio: Optional[str] = None
    timestamp: int

    @classmethod
    def from_message(cls, message: Message) -> "MessageOut":
        return cls(
            id=message.id,
            sender=message.sender,
            recipient=message.recipient,
            text=message.text,
            image=message.image,
            audio=message.audio,
            timestamp=message.created_at,
        )


class UserOut(BaseModel):
    nickname: str
    avatar: Optional[str] = None
    online: bool = False

    @classmethod
    def from_user(cls, user: User, online: bool = False) -> "UserOut":
        return cls(nickname=user.nickname, avatar=user.avatar, online=online)


class ChatSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    peer: str
    last_message: MessageOut = Field(alias="lastMessage")


class ErrorEvent(OutboundFrame):
    type: Literal["error"] = "error"
    message: str
    code: str


class RegisteredEvent(OutboundFrame):
    type: Literal["registered"] = "registered"
    nickname: str


class LoggedInEvent(OutboundFrame):
    type: Literal["loggedIn"] = "loggedIn"
    nickname: str
    avatar: Optional[str] = None


class UserListEvent(OutboundFrame):
    type: Literal["userList"] = "userList"
    users: List[UserOut]


class NewUserEvent(OutboundFrame):
    type: Literal["newUser"] = "newUser"
    user: UserOut


class ChatListEvent(OutboundFrame):
    type: Literal["chatList"] = "chatList"
    chats: List[ChatSummary]


class ChatHistoryEvent(OutboundFrame):
    type: Literal["chatHistory"] = "chatHistory"
    messages: List[MessageOut]
    peer: str = Field(alias="with")


class NewMessageEvent(OutboundFrame):
    type: Literal["newMessage"] = "newMessage"
    message: MessageOut


class AvatarUpdatedEvent(OutboundFrame):
    type: Literal["avatarUpdated"] = "avatarUpdated"
    avatar: Optional[str] = None


class UploadOut(BaseModel):
    url: str = Field(..., description="Public URL of the stored blob")


class StatusOut(BaseModel):
    status: str
    users: int
    online: int
    connections: int
