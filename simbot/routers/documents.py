import httpx
from fastapi import APIRouter, HTTPException, status

from simbot.logging_config import get_logger
from simbot.schemas.document import DocumentRequest, DocumentResponse, DocumentUpdateRequest
from simbot.services import knowledge_service
from simbot.services.knowledge_service import KnowledgeStoreError

logger = get_logger("documents_router")

router = APIRouter(prefix="/api/documents", tags=["documents"])


def _store_failed(action: str, error: Exception) -> HTTPException:
    logger.error(f"Failed to {action} document: {error}")
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to {action} document")


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
def create_document(request: DocumentRequest):
    try:
        stored = knowledge_service.store_document(request.content, request.metadata)
    except (KnowledgeStoreError, httpx.HTTPError, ValueError) as e:
        raise _store_failed("store", e)
    return DocumentResponse(
        documentId=stored["document_id"],
        content=stored["content"],
        metadata=stored["metadata"],
        message="Document stored successfully",
        success=True,
    )


@router.put("", response_model=DocumentResponse)
def update_document(request: DocumentUpdateRequest):
    try:
        updated = knowledge_service.update_document(request.documentId, request.content, request.metadata)
    except (KnowledgeStoreError, httpx.HTTPError, ValueError) as e:
        raise _store_failed("update", e)
    return DocumentResponse(
        documentId=updated["document_id"],
        content=updated["content"],
        metadata=updated["metadata"],
        message="Document updated successfully",
        success=True,
    )


@router.delete("/{document_id}", response_model=DocumentResponse)
def delete_document(document_id: str):
    try:
        knowledge_service.delete_document(document_id)
    except (KnowledgeStoreError, httpx.HTTPError) as e:
        raise _store_failed("delete", e)
    return DocumentResponse(documentId=document_id, message="Document deleted successfully", success=True)
