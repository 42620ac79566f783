from simbot.schemas.conversation import (
    ContextResponse,
    ContextUpdateRequest,
    ConversationStatsResponse,
    StateResponse,
    StateUpdateRequest,
)
from simbot.schemas.document import DocumentRequest, DocumentResponse, DocumentUpdateRequest
from simbot.schemas.webhook import WhatsAppResponse, WhatsAppWebhook

__all__ = [
    "ContextResponse",
    "ContextUpdateRequest",
    "ConversationStatsResponse",
    "DocumentRequest",
    "DocumentResponse",
    "DocumentUpdateRequest",
    "StateResponse",
    "StateUpdateRequest",
    "WhatsAppResponse",
    "WhatsAppWebhook",
]
