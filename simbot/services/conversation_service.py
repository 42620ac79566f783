import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from simbot.logging_config import get_logger, log_timing
from simbot.models import Conversation, Message
from simbot.services.log_sanitizer import mask_phone
from simbot.services.state_machine import (
    ConversationState,
    TransitionPolicy,
    can_transition,
    parse_state,
)

logger = get_logger("conversation_service")

ERROR_CONTEXT_KEYS = ("last_error", "error_timestamp", "failed_tool", "error_count")

# Documented context vocabulary. Other keys are still stored but logged.
CONTEXT_KEYS = frozenset(
    {
        "customer_id",
        "customer_name",
        "customer_first_name",
        "customer_last_name",
        "customer_email",
        "customer_phone",
        "address_id",
        "address_street",
        "address_number",
        "address_district",
        "address_postal_code",
        "address_reference",
        "address_full",
        "order_id",
        "order_product_id",
        "order_status",
        "last_order_id",
        "portability_id",
        "portability_phone",
        "portability_status",
        "portability_imei",
        "portability_nip",
        "portability_order_id",
        "sim_card_icc",
        "checkout_session_id",
        "checkout_session_url",
        "payment_completed",
        "imei_checked",
        "imei_compatible",
        "imei_compatibility_message",
        "_cleaned_at",
        "_retention_policy",
        *ERROR_CONTEXT_KEYS,
    }
)

_locks_guard = threading.Lock()
# key -> [lock, holders]; entries are dropped when the last holder leaves.
_conversation_locks: Dict[str, list] = {}


def _acquire_lock_entry(conversation_id: str) -> threading.RLock:
    with _locks_guard:
        entry = _conversation_locks.get(conversation_id)
        if entry is None:
            entry = [threading.RLock(), 0]
            _conversation_locks[conversation_id] = entry
        entry[1] += 1
        return entry[0]


def _release_lock_entry(conversation_id: str) -> None:
    with _locks_guard:
        entry = _conversation_locks.get(conversation_id)
        if entry is None:
            return
        entry[1] -= 1
        if entry[1] <= 0:
            del _conversation_locks[conversation_id]


@contextmanager
def conversation_lock(conversation_id: str) -> Iterator[None]:
    """Serialize mutations of one conversation within this process."""
    lock = _acquire_lock_entry(conversation_id)
    try:
        with lock:
            yield
    finally:
        _release_lock_entry(conversation_id)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def get_conversation(db: Session, conversation_id: str, *, for_update: bool = False) -> Optional[Conversation]:
    query = db.query(Conversation).filter(Conversation.conversation_id == conversation_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def get_or_create_conversation(db: Session, conversation_id: str, *, for_update: bool = False) -> Conversation:
    """Find conversation by key or create a new one in INITIAL state."""
    conversation = get_conversation(db, conversation_id, for_update=for_update)

    if not conversation:
        now = _utcnow()
        conversation = Conversation(
            conversation_id=conversation_id,
            phone_number=conversation_id[:20],
            current_state=ConversationState.INITIAL.value,
            context_data={},
            created_at=now,
            updated_at=now,
            is_active=True,
        )
        db.add(conversation)
        db.flush()
        logger.info(f"Created conversation {mask_phone(conversation_id)}")

    return conversation


def get_current_state(db: Session, conversation_id: str) -> ConversationState:
    conversation = get_conversation(db, conversation_id)
    if not conversation:
        return ConversationState.INITIAL
    return parse_state(conversation.current_state) or ConversationState.INITIAL


def transition_to(
    db: Session,
    conversation_id: str,
    new_state: ConversationState,
    policy: Optional[TransitionPolicy] = None,
) -> bool:
    """Validate and apply a state transition. Returns False when rejected."""
    with conversation_lock(conversation_id):
        conversation = get_or_create_conversation(db, conversation_id, for_update=True)
        current_state = parse_state(conversation.current_state) or ConversationState.INITIAL

        if not can_transition(current_state, new_state, policy):
            logger.warning(
                "Invalid state transition",
                extra={
                    "context": {
                        "conversation": mask_phone(conversation_id),
                        "from": current_state.value,
                        "to": new_state.value,
                    }
                },
            )
            return False

        conversation.current_state = new_state.value
        conversation.updated_at = _utcnow()
        db.flush()

    logger.info(
        "State transition applied",
        extra={
            "context": {"conversation": mask_phone(conversation_id), "from": current_state.value, "to": new_state.value}
        },
    )
    return True


def get_all_context_data(db: Session, conversation_id: str) -> Dict[str, Any]:
    conversation = get_conversation(db, conversation_id)
    if not conversation or not isinstance(conversation.context_data, dict):
        return {}
    return dict(conversation.context_data)


def get_context_data(db: Session, conversation_id: str, key: str) -> Any:
    return get_all_context_data(db, conversation_id).get(key)


def store_context_values(db: Session, conversation_id: str, values: Dict[str, Any]) -> None:
    """Merge values into the conversation context map."""
    if not values:
        return
    unknown = sorted(set(values) - CONTEXT_KEYS)
    if unknown:
        logger.debug(f"Storing keys outside the context vocabulary: {unknown}")

    with conversation_lock(conversation_id):
        conversation = get_or_create_conversation(db, conversation_id, for_update=True)
        context = dict(conversation.context_data or {})
        context.update(values)
        conversation.context_data = context
        conversation.updated_at = _utcnow()
        db.flush()


def store_context_data(db: Session, conversation_id: str, key: str, value: Any) -> None:
    store_context_values(db, conversation_id, {key: value})


def _remove_context_keys(db: Session, conversation_id: str, keys) -> None:
    with conversation_lock(conversation_id):
        conversation = get_conversation(db, conversation_id, for_update=True)
        if not conversation:
            return
        context = dict(conversation.context_data or {})
        for key in keys:
            context.pop(key, None)
        conversation.context_data = context
        conversation.updated_at = _utcnow()
        db.flush()


@log_timing(logger, "Error recording")
def record_error(db: Session, conversation_id: str, tool_name: str, error_message: str) -> None:
    """Record error details in context for retry detection on the next turn."""
    with conversation_lock(conversation_id):
        previous = get_context_data(db, conversation_id, "error_count")
        try:
            error_count = int(previous) + 1 if previous is not None else 1
        except (TypeError, ValueError):
            error_count = 1

        store_context_values(
            db,
            conversation_id,
            {
                "last_error": error_message,
                "error_timestamp": int(time.time() * 1000),
                "failed_tool": tool_name,
                "error_count": error_count,
            },
        )

    logger.info(
        "Recorded conversation error",
        extra={"context": {"conversation": mask_phone(conversation_id), "tool": tool_name, "count": error_count}},
    )


def clear_error_context(db: Session, conversation_id: str) -> None:
    _remove_context_keys(db, conversation_id, ERROR_CONTEXT_KEYS)
    logger.info(f"Error context cleared for {mask_phone(conversation_id)}")


def is_retry_attempt(db: Session, conversation_id: str) -> bool:
    """True when the conversation is in ERROR_STATE with a recorded error."""
    state = get_current_state(db, conversation_id)
    return state == ConversationState.ERROR_STATE and get_context_data(db, conversation_id, "last_error") is not None


def recover_from_error(
    db: Session,
    conversation_id: str,
    target_state: ConversationState,
    policy: Optional[TransitionPolicy] = None,
) -> bool:
    clear_error_context(db, conversation_id)
    recovered = transition_to(db, conversation_id, target_state, policy)
    if not recovered:
        logger.warning(f"Failed to recover {mask_phone(conversation_id)} to {target_state.value}")
    return recovered


@log_timing(logger, "Conversation reset")
def reset_conversation(db: Session, conversation_id: str) -> None:
    """Reset state to INITIAL, empty the context and drop the message log."""
    with conversation_lock(conversation_id):
        conversation = get_conversation(db, conversation_id, for_update=True)
        if conversation:
            conversation.current_state = ConversationState.INITIAL.value
            conversation.context_data = {}
            conversation.updated_at = _utcnow()
        db.query(Message).filter(Message.conversation_id == conversation_id).delete(synchronize_session=False)
        db.flush()
        if conversation:
            db.expire(conversation, ["messages"])

    logger.info(f"Conversation reset: {mask_phone(conversation_id)}")


def get_conversation_stats(db: Session, conversation_id: str) -> Dict[str, Any]:
    conversation = get_conversation(db, conversation_id)
    if not conversation:
        return {}

    message_count = (
        db.query(func.count(Message.id)).filter(Message.conversation_id == conversation_id).scalar() or 0
    )
    return {
        "conversationId": conversation.conversation_id,
        "currentState": conversation.current_state,
        "createdAt": conversation.created_at,
        "updatedAt": conversation.updated_at,
        "isActive": conversation.is_active,
        "messageCount": message_count,
    }
