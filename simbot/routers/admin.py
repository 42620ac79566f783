"""Admin API endpoints for retention cleanup."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.orm import Session

from simbot.config import settings
from simbot.database import get_db
from simbot.services.cleanup_service import cleanup_conversation, cleanup_sensitive_data, get_cleanup_stats
from simbot.services.conversation_service import get_conversation

router = APIRouter(prefix="/admin", tags=["admin"])


def _require_admin_token(provided: Optional[str]) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not provided or provided != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


@router.post("/cleanup")
def run_cleanup(
    db: Session = Depends(get_db),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
):
    """Strip sensitive context from conversations past the retention window."""
    _require_admin_token(x_admin_token)
    cleaned = cleanup_sensitive_data(db)
    db.commit()
    return {"status": "ok", "cleaned": cleaned}


@router.get("/cleanup/stats")
def cleanup_stats(
    db: Session = Depends(get_db),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
):
    _require_admin_token(x_admin_token)
    return get_cleanup_stats(db)


@router.post("/cleanup/{conversation_id}")
def cleanup_single(
    conversation_id: str,
    db: Session = Depends(get_db),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
):
    _require_admin_token(x_admin_token)
    if get_conversation(db, conversation_id) is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    cleaned = cleanup_conversation(db, conversation_id)
    db.commit()
    return {"status": "ok", "conversation_id": conversation_id, "cleaned": cleaned}
