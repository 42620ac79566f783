"""Glue between the inbound surfaces, the orchestrator and outbound delivery."""

from typing import Callable, Optional

from sqlalchemy.orm import Session

from simbot.database import SessionLocal
from simbot.logging_config import get_logger
from simbot.services.conversation_service import conversation_lock
from simbot.services.log_sanitizer import mask_phone
from simbot.services.message_buffer import MessageBuffer
from simbot.services.orchestrator import ChatOrchestrator, get_orchestrator
from simbot.services.whatsapp_service import WhatsAppService, get_whatsapp_service

logger = get_logger("chat_service")


def normalize_whatsapp_number(raw_number: str) -> str:
    """Conversation key from a WhatsApp sender id: the character at index 2 is dropped (521XXXXXXXXXX -> 52XXXXXXXXXX)."""
    raw_number = (raw_number or "").strip()
    if len(raw_number) < 3:
        return raw_number
    return raw_number[:2] + raw_number[3:]


def process_turn(
    db: Session,
    message: str,
    conversation_id: str,
    orchestrator: Optional[ChatOrchestrator] = None,
) -> str:
    """Run one orchestrated turn and commit it."""
    orchestrator = orchestrator or get_orchestrator()
    logger.info(f"Received message from {mask_phone(conversation_id)}")
    with conversation_lock(conversation_id):
        try:
            reply = orchestrator.handle_message(db, message, conversation_id)
            db.commit()
        except Exception:
            db.rollback()
            raise
    return reply


def process_buffered_message(
    conversation_id: str,
    message: str,
    phone_number_id: Optional[str],
    *,
    session_factory: Callable[[], Session] = SessionLocal,
    orchestrator: Optional[ChatOrchestrator] = None,
    whatsapp: Optional[WhatsAppService] = None,
) -> str:
    """Handle a coalesced message from the buffer and deliver the reply."""
    db = session_factory()
    try:
        reply = process_turn(db, message, conversation_id, orchestrator)
    finally:
        db.close()

    if phone_number_id:
        (whatsapp or get_whatsapp_service()).send_text(phone_number_id, conversation_id, reply)
    else:
        logger.warning(f"No phone_number_id for {mask_phone(conversation_id)}, reply not delivered")
    return reply


_message_buffer: Optional[MessageBuffer] = None


def get_message_buffer() -> MessageBuffer:
    """Shared buffer feeding coalesced messages into process_buffered_message."""
    global _message_buffer
    if _message_buffer is None:
        _message_buffer = MessageBuffer(
            lambda key, text, routing: process_buffered_message(key, text, routing)
        )
    return _message_buffer


async def shutdown_message_buffer() -> None:
    global _message_buffer
    if _message_buffer is not None:
        await _message_buffer.shutdown()
        _message_buffer = None
