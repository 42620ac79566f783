from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from simbot.database import get_db
from simbot.schemas.conversation import (
    ContextResponse,
    ContextUpdateRequest,
    ConversationStatsResponse,
    StateResponse,
    StateUpdateRequest,
)
from simbot.services import conversation_service
from simbot.services.state_machine import parse_state

router = APIRouter(prefix="/api/conversations", tags=["conversations"])


def _require_conversation(db: Session, conversation_id: str) -> None:
    if conversation_service.get_conversation(db, conversation_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")


@router.get("/{conversation_id}/state", response_model=StateResponse)
def get_state(conversation_id: str, db: Session = Depends(get_db)):
    state = conversation_service.get_current_state(db, conversation_id)
    return StateResponse(conversation_id=conversation_id, state=state.value)


@router.post("/{conversation_id}/state", response_model=StateResponse)
def update_state(conversation_id: str, request: StateUpdateRequest, db: Session = Depends(get_db)):
    new_state = parse_state(request.state)
    if new_state is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown state: {request.state}")

    conversation_service.get_or_create_conversation(db, conversation_id)
    if not conversation_service.transition_to(db, conversation_id, new_state):
        db.rollback()
        current = conversation_service.get_current_state(db, conversation_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Transition {current.value} -> {new_state.value} not allowed",
        )
    db.commit()
    return StateResponse(conversation_id=conversation_id, state=new_state.value, updated=True)


@router.get("/{conversation_id}/context", response_model=ContextResponse)
def get_context(conversation_id: str, db: Session = Depends(get_db)):
    _require_conversation(db, conversation_id)
    return ContextResponse(
        conversation_id=conversation_id,
        context=conversation_service.get_all_context_data(db, conversation_id),
    )


@router.post("/{conversation_id}/context", response_model=ContextResponse)
def update_context(conversation_id: str, request: ContextUpdateRequest, db: Session = Depends(get_db)):
    conversation_service.store_context_data(db, conversation_id, request.key, request.value)
    db.commit()
    return ContextResponse(
        conversation_id=conversation_id,
        context=conversation_service.get_all_context_data(db, conversation_id),
    )


@router.get("/{conversation_id}/stats", response_model=ConversationStatsResponse)
def get_stats(conversation_id: str, db: Session = Depends(get_db)):
    stats = conversation_service.get_conversation_stats(db, conversation_id)
    if not stats:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return ConversationStatsResponse(**stats)


@router.delete("/{conversation_id}")
def reset(conversation_id: str, db: Session = Depends(get_db)):
    """Back to INITIAL with empty context and no messages."""
    _require_conversation(db, conversation_id)
    conversation_service.reset_conversation(db, conversation_id)
    db.commit()
    return {"conversation_id": conversation_id, "reset": True}
