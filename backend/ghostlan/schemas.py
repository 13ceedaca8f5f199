from datetime import datetime
from typing import Literal
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

ChatType = Literal["direct", "group", "broadcast"]
MessageType = Literal["text", "image", "video", "document"]


class CamelModel(BaseModel):
    """Wire models use camelCase keys (chatId, isSecret, readBy, ...)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ---------------------- VIEWS ----------------------
class UserOut(CamelModel):
    id: str
    name: str
    role: str
    department: str


class UserView(UserOut):
    is_online: bool = False


class ReplyTo(CamelModel):
    id: str
    sender_name: str = ""
    content: str = ""


class MessageView(CamelModel):
    id: str
    chat_id: str
    sender_id: str
    content: str
    type: MessageType
    timestamp: datetime
    is_secret: bool
    reply_to: ReplyTo | None = None
    reactions: dict[str, list[str]] = Field(default_factory=dict)
    read_by: list[str] = Field(default_factory=list)
    status: Literal["sent", "read"] = "sent"


class ChatView(CamelModel):
    id: str
    name: str
    type: ChatType
    participants: list[str] = Field(default_factory=list)
    hidden_by: list[str] = Field(default_factory=list)
    messages: list[MessageView] = Field(default_factory=list)


class Snapshot(CamelModel):
    users: list[UserView]
    chats: list[ChatView]


# ---------------------- INTENTS ----------------------
class RegisterIn(CamelModel):
    user_id: str = Field(min_length=1)


class CreateGroupIn(CamelModel):
    name: str = Field(min_length=1)
    participants: list[str] = Field(min_length=1)


class CreateDirectChatIn(CamelModel):
    sender_id: str = Field(min_length=1)
    participant_id: str = Field(min_length=1)


class SendMessageIn(CamelModel):
    chat_id: str = Field(min_length=1)
    sender_id: str = Field(min_length=1)
    content: str = Field(min_length=1)
    type: MessageType = "text"
    is_secret: bool = False
    reply_to: ReplyTo | None = None


class MarkReadIn(CamelModel):
    chat_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


class AddReactionIn(CamelModel):
    chat_id: str = Field(min_length=1)
    message_id: str = Field(min_length=1)
    emoji: str = Field(min_length=1)
    user_id: str = Field(min_length=1)


class DeleteMessageIn(CamelModel):
    chat_id: str = Field(min_length=1)
    message_id: str = Field(min_length=1)


class DeleteChatIn(CamelModel):
    chat_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    type: Literal["hard", "soft"]


# ---------------------- HTTP ----------------------
class LoginIn(BaseModel):
    id: str
    password: str


class LoginOut(CamelModel):
    success: bool
    id: str | None = None
    name: str | None = None
    role: str | None = None
    department: str | None = None
    message: str | None = None


class ChangePasswordIn(CamelModel):
    employee_id: str
    old_password: str
    new_password: str = Field(min_length=1)


class ChangePasswordOut(BaseModel):
    success: bool
    message: str | None = None


class UploadOut(CamelModel):
    success: bool
    file_url: str
    file_type: str
    message_type: MessageType
