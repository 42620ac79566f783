"""
Retention cleanup for PII stored in conversation context.

IDs, state and timestamps are kept for reference; contact details, address
details, portability secrets and payment URLs are removed once a conversation
has been inactive longer than the retention window. Scheduling is external
(cron hitting the admin endpoint).
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from simbot.config import settings
from simbot.logging_config import get_logger, log_timing
from simbot.models import Conversation
from simbot.services.conversation_service import conversation_lock
from simbot.services.log_sanitizer import mask_phone

logger = get_logger("cleanup_service")

SENSITIVE_KEYS = (
    "customer_email",
    "customer_phone",
    "customer_name",
    "customer_first_name",
    "customer_last_name",
    "address_full",
    "address_street",
    "address_district",
    "address_number",
    "address_postal_code",
    "address_reference",
    "portability_nip",
    "portability_imei",
    "portability_phone",
    "checkout_session_url",
    "sim_card_icc",
    "imei_compatibility_message",
)

CLEANED_MARKER = "_cleaned_at"


def _cutoff(now: Optional[datetime] = None, retention_days: Optional[int] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    days = retention_days if retention_days is not None else settings.retention_days
    return now - timedelta(days=days)


def _find_aged_conversations(db: Session, cutoff: datetime) -> List[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.updated_at < cutoff, Conversation.is_active.is_(True))
        .all()
    )


def remove_sensitive_fields(conversation: Conversation, now: Optional[datetime] = None) -> bool:
    """Strip PII keys. Returns False when there was nothing to clean."""
    context = dict(conversation.context_data or {})
    if not context or CLEANED_MARKER in context:
        return False

    removed = [key for key in SENSITIVE_KEYS if context.pop(key, None) is not None]
    if not removed:
        return False

    context[CLEANED_MARKER] = (now or datetime.now(timezone.utc)).isoformat()
    context["_retention_policy"] = f"{settings.retention_days}_days"
    # updated_at is left alone so the conversation keeps its age
    conversation.context_data = context
    logger.info(
        "Cleaned sensitive data",
        extra={"context": {"conversation": mask_phone(conversation.conversation_id), "removed": len(removed)}},
    )
    return True


@log_timing(logger, "Sensitive data cleanup")
def cleanup_sensitive_data(db: Session, now: Optional[datetime] = None) -> int:
    """Clean every aged active conversation. Returns the number cleaned."""
    conversations = _find_aged_conversations(db, _cutoff(now))
    cleaned = 0
    for conversation in conversations:
        try:
            with conversation_lock(conversation.conversation_id):
                if remove_sensitive_fields(conversation, now):
                    cleaned += 1
        except Exception:
            logger.exception(f"Failed to clean conversation {mask_phone(conversation.conversation_id)}")
    db.flush()

    logger.info(f"Sensitive data cleanup completed. Cleaned {cleaned} out of {len(conversations)} old conversations")
    return cleaned


def cleanup_conversation(db: Session, conversation_id: str) -> bool:
    """Clean a single conversation regardless of age (right to be forgotten)."""
    logger.info(f"Manual cleanup requested for {mask_phone(conversation_id)}")
    with conversation_lock(conversation_id):
        conversation = (
            db.query(Conversation).filter(Conversation.conversation_id == conversation_id).with_for_update().first()
        )
        if not conversation:
            return False
        cleaned = remove_sensitive_fields(conversation)
        db.flush()
    return cleaned


def get_cleanup_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    cutoff = _cutoff(now)
    conversations = _find_aged_conversations(db, cutoff)
    pending = sum(1 for c in conversations if CLEANED_MARKER not in (c.context_data or {}))
    return {
        "total_old_conversations": len(conversations),
        "pending_cleanup": pending,
        "already_cleaned": len(conversations) - pending,
        "retention_days": settings.retention_days,
        "cutoff_date": cutoff.isoformat(),
    }
