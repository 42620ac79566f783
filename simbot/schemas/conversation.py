from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class StateUpdateRequest(BaseModel):
    state: str


class StateResponse(BaseModel):
    conversation_id: str
    state: str
    updated: Optional[bool] = None


class ContextUpdateRequest(BaseModel):
    key: str
    value: Any = None


class ContextResponse(BaseModel):
    conversation_id: str
    context: Dict[str, Any]


class ConversationStatsResponse(BaseModel):
    conversationId: str
    currentState: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
    isActive: bool
    messageCount: int
