from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import JSON, Integer, String, Text, ForeignKey, DateTime, Boolean, func
from .db import Base


class User(Base):
    __tablename__ = "users"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    role: Mapped[str] = mapped_column(String(40), nullable=False, default="worker")
    department: Mapped[str] = mapped_column(String(80), nullable=False, default="")
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)


class Chat(Base):
    __tablename__ = "chats"
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    # ordered list of user ids; empty for broadcast chats
    participants: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    hidden_by: Mapped[list] = mapped_column(JSON, nullable=False, default=list)


class Message(Base):
    __tablename__ = "messages"
    # seq is the insertion order and breaks timestamp ties
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    chat_id: Mapped[str] = mapped_column(ForeignKey("chats.id", ondelete="CASCADE"), index=True)
    sender_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(16), nullable=False, default="text")
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    is_secret: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reply_to: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    reactions: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    read_by: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(8), nullable=False, default="sent")
