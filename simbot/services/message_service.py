from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from simbot.logging_config import get_logger
from simbot.models import Message, MessageType
from simbot.services.conversation_service import conversation_lock, get_or_create_conversation

logger = get_logger("message_service")

# Tool results are replayed to the model as system messages.
_ROLE_BY_TYPE = {
    MessageType.USER.value: "user",
    MessageType.ASSISTANT.value: "assistant",
    MessageType.SYSTEM.value: "system",
    MessageType.TOOL.value: "system",
}


def _next_message_order(db: Session, conversation_id: str) -> int:
    max_order = (
        db.query(func.max(Message.message_order)).filter(Message.conversation_id == conversation_id).scalar()
    )
    return max_order + 1 if max_order is not None else 0


def save_message(
    db: Session,
    conversation_id: str,
    message_type: MessageType,
    content: str,
    message_metadata: Optional[dict] = None,
) -> Message:
    """Append a message with the next gap-free order index."""
    with conversation_lock(conversation_id):
        conversation = get_or_create_conversation(db, conversation_id, for_update=True)
        message = Message(
            conversation_id=conversation_id,
            message_type=message_type.value,
            content=content or "",
            message_metadata=message_metadata or {},
            message_order=_next_message_order(db, conversation_id),
            created_at=datetime.now(timezone.utc),
        )
        db.add(message)
        conversation.updated_at = message.created_at
        db.flush()
    return message


def get_messages(db: Session, conversation_id: str) -> List[Message]:
    return (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.message_order.asc())
        .all()
    )


def get_conversation_history(db: Session, conversation_id: str, limit: int = 20) -> List[Dict[str, str]]:
    """Last `limit` messages in chat-completions format, oldest first."""
    rows = (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.message_order.desc())
        .limit(limit)
        .all()
    )
    history = [
        {"role": _ROLE_BY_TYPE.get(row.message_type, "system"), "content": row.content}
        for row in reversed(rows)
        if row.content
    ]
    logger.debug(f"Loaded {len(history)} history messages")
    return history
