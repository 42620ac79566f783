from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError
from sqlalchemy.orm import Session

from simbot.config import settings
from simbot.database import get_db
from simbot.logging_config import get_logger
from simbot.schemas.webhook import WhatsAppResponse, WhatsAppWebhook
from simbot.services.chat_service import get_message_buffer, normalize_whatsapp_number, process_turn
from simbot.services.log_sanitizer import mask_phone

logger = get_logger("chat_router")

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.get("/whatsapp")
async def verify_whatsapp_webhook(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    challenge: Optional[str] = Query(default=None, alias="hub.challenge"),
    verify_token: Optional[str] = Query(default=None, alias="hub.verify_token"),
):
    """Subscription handshake from the WhatsApp Cloud API."""
    expected = settings.whatsapp_verify_token
    if mode == "subscribe" and expected and verify_token == expected:
        logger.info("WhatsApp webhook verified")
        return PlainTextResponse(challenge or "")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


@router.post("/whatsapp", status_code=status.HTTP_202_ACCEPTED, response_model=WhatsAppResponse)
async def receive_whatsapp_message(request: Request):
    """Accept an inbound message and hand it to the debounce buffer."""
    try:
        payload = WhatsAppWebhook.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logger.warning(f"Invalid WhatsApp payload: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid WhatsApp payload")

    if not payload.entry or not payload.entry[0].changes:
        return WhatsAppResponse(status="ignored", message="No changes in payload")

    value = payload.entry[0].changes[0].value
    if not value.messages:
        # Delivery/read status callbacks carry no messages.
        return WhatsAppResponse(status="ignored", message="No messages in payload")

    message = value.messages[0]
    if message.type != "text" or message.text is None or not message.text.body.strip():
        logger.info(f"Ignoring non-text message of type {message.type}")
        return WhatsAppResponse(status="ignored", message="Only text messages are supported")

    phone_number_id = value.metadata.phone_number_id if value.metadata else None
    sender = normalize_whatsapp_number(message.from_)
    buffered = get_message_buffer().add_message(sender, message.text.body, phone_number_id)
    logger.info(f"WhatsApp message accepted from {mask_phone(sender)}")
    return WhatsAppResponse(status="accepted", message="Message buffered", buffered_messages=buffered)


@router.get("/ask")
def ask(
    message: str = Query(min_length=1),
    phone_number: str = Query(min_length=1),
    db: Session = Depends(get_db),
):
    """Run a turn synchronously, bypassing the buffer."""
    reply = process_turn(db, message, phone_number)
    return {"response": reply}
