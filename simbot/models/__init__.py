from simbot.models.conversation import Conversation
from simbot.models.message import Message, MessageType

__all__ = [
    "Conversation",
    "Message",
    "MessageType",
]
