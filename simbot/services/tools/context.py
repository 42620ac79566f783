from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.orm import Session

from simbot.services.context_data_manager import ContextDataManager


@dataclass
class TurnContext:
    """Per-turn binding of the conversation being processed, passed to every tool call."""

    db: Session
    conversation_id: str
    context_manager: ContextDataManager = field(default_factory=ContextDataManager)
    active: bool = True

    def release(self) -> None:
        self.active = False

    @property
    def bound_conversation_id(self) -> Optional[str]:
        return self.conversation_id if self.active else None
