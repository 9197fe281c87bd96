"""Database models for relay snapshots."""
from sqlalchemy import BigInteger, Column, Index, Integer, String, Text

from .database import Base


class UserRecord(Base):
    __tablename__ = "users"

    nickname = Column(String(20), primary_key=True)
    credential = Column(String, nullable=True)
    avatar = Column(Text, nullable=True)
    # registration order
    position = Column(Integer, nullable=False)


class MessageRecord(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_conversation", "participant_a", "participant_b", "seq"),)

    id = Column(String(32), primary_key=True)
    participant_a = Column(String(20), nullable=False)
    participant_b = Column(String(20), nullable=False)
    # position within the conversation window
    seq = Column(Integer, nullable=False)
    sender = Column(String(20), nullable=False)
    recipient = Column(String(20), nullable=False)
    text = Column(Text, nullable=True)
    image = Column(Text, nullable=True)
    audio = Column(Text, nullable=True)
    created_at = Column(BigInteger, nullable=False)
