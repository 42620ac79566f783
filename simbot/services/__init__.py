from simbot.services.conversation_service import (
    conversation_lock,
    get_current_state,
    get_or_create_conversation,
    transition_to,
)
from simbot.services.message_service import (
    get_conversation_history,
    save_message,
)
from simbot.services.state_machine import (
    ConversationState,
    TransitionPolicy,
    can_transition,
)

__all__ = [
    "ConversationState",
    "TransitionPolicy",
    "can_transition",
    "conversation_lock",
    "get_conversation_history",
    "get_current_state",
    "get_or_create_conversation",
    "save_message",
    "transition_to",
]
