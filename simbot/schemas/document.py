from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class DocumentRequest(BaseModel):
    content: str = Field(min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class DocumentUpdateRequest(BaseModel):
    documentId: str = Field(min_length=1)
    content: str = Field(min_length=1)
    metadata: Optional[Dict[str, Any]] = None


class DocumentResponse(BaseModel):
    documentId: Optional[str] = None
    content: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    message: str
    success: bool
