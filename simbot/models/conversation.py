from datetime import datetime, timezone

from sqlalchemy import JSON, BigInteger, Boolean, Column, Integer, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.types import TIMESTAMP

from simbot.database import Base

JSONDocument = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Conversation(Base):
    __tablename__ = "chat_conversations"

    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    conversation_id = Column(String(64), nullable=False, unique=True, index=True)
    phone_number = Column(String(20))
    current_state = Column(String(50), nullable=False, default="INITIAL")
    context_data = Column(JSONDocument, nullable=False, default=dict)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=_utcnow)
    is_active = Column(Boolean, nullable=False, default=True)

    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.message_order",
        cascade="all, delete-orphan",
    )
