import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from simbot.config import settings
from simbot.logging_config import get_logger

logger = get_logger("knowledge_service")

NO_CONTEXT_PLACEHOLDER = "No relevant information found in the knowledge base for this query."
CONTEXT_UNAVAILABLE_PLACEHOLDER = "Context retrieval temporarily unavailable."


class KnowledgeStoreError(Exception):
    """Raised when the embedding service or Qdrant rejects a request."""


def _qdrant_headers() -> dict:
    headers = {"Content-Type": "application/json"}
    if settings.qdrant_api_key:
        headers["api-key"] = settings.qdrant_api_key
    return headers


def _points_url(suffix: str = "") -> str:
    return f"{settings.qdrant_host}/collections/{settings.qdrant_collection}/points{suffix}"


def get_embedding(text: str) -> List[float]:
    """Get embedding from the embedding service."""
    with httpx.Client(timeout=30.0) as client:
        response = client.post(settings.embedding_url, json={"inputs": text})
        if response.status_code != 200:
            raise KnowledgeStoreError(f"Embedding error: {response.status_code} - {response.text}")

        data = response.json()
        # Handle different response formats
        if isinstance(data, list) and len(data) > 0:
            return data[0] if isinstance(data[0], list) else data
        if isinstance(data, dict):
            embedding = data.get("embedding") or data.get("embeddings")
            if isinstance(embedding, list):
                return embedding
        raise KnowledgeStoreError(f"Unexpected embedding response: {type(data).__name__}")


def search_knowledge(
    query: str,
    limit: Optional[int] = None,
    score_threshold: Optional[float] = None,
) -> List[dict]:
    """Search the knowledge base in Qdrant, best matches first."""
    limit = limit if limit is not None else settings.rag_top_k
    score_threshold = score_threshold if score_threshold is not None else settings.rag_score_threshold

    embedding = get_embedding(query)

    with httpx.Client(timeout=30.0) as client:
        response = client.post(
            _points_url("/search"),
            headers=_qdrant_headers(),
            json={
                "vector": embedding,
                "limit": limit,
                "score_threshold": score_threshold,
                "with_payload": True,
            },
        )

        if response.status_code != 200:
            raise KnowledgeStoreError(f"Qdrant search error: {response.status_code} - {response.text}")

        results = []
        for point in response.json().get("result") or []:
            payload = point.get("payload") or {}
            content = payload.get("content")
            results.append(
                {
                    "id": point.get("id"),
                    "score": point.get("score"),
                    "text": content if isinstance(content, str) else None,
                    "metadata": payload.get("metadata") or {},
                }
            )

    logger.info(f"Knowledge search: found {len(results)} results")
    return results


def fetch_semantic_context(query: str) -> str:
    """Reference text for the prompt. Never raises; degrades to a placeholder."""
    try:
        results = search_knowledge(query)
    except Exception as e:
        logger.error(f"[RAG] Error fetching semantic context: {e}")
        return CONTEXT_UNAVAILABLE_PLACEHOLDER

    texts = [r["text"] for r in results if r.get("text") and r["text"].strip()]
    if not texts:
        logger.warning("[RAG] No documents found for query")
        return NO_CONTEXT_PLACEHOLDER

    context = "".join(f"{text}\n\n" for text in texts)
    logger.info(f"[RAG] Retrieved {len(texts)} documents, {len(context)} characters")
    return context


def _upsert_point(document_id: str, content: str, metadata: Dict[str, Any]) -> None:
    point = {
        "id": document_id,
        "vector": get_embedding(content),
        "payload": {"content": content, "metadata": metadata},
    }
    with httpx.Client(timeout=60.0) as client:
        response = client.put(_points_url(), headers=_qdrant_headers(), json={"points": [point]})
    if response.status_code != 200:
        raise KnowledgeStoreError(f"Qdrant upsert error: {response.status_code} - {response.text}")


def store_document(content: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Embed and store a new document under a generated id."""
    document_id = str(uuid.uuid4())
    full_metadata = dict(metadata or {})
    full_metadata["documentId"] = document_id
    full_metadata["createdAt"] = datetime.now(timezone.utc).isoformat()

    _upsert_point(document_id, content, full_metadata)
    logger.info(f"Stored document {document_id}")
    return {"document_id": document_id, "content": content, "metadata": full_metadata}


def update_document(document_id: str, content: str, metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Replace content and metadata of an existing document."""
    full_metadata = dict(metadata or {})
    full_metadata["documentId"] = document_id
    full_metadata["updatedAt"] = datetime.now(timezone.utc).isoformat()

    _upsert_point(document_id, content, full_metadata)
    logger.info(f"Updated document {document_id}")
    return {"document_id": document_id, "content": content, "metadata": full_metadata}


def delete_document(document_id: str) -> None:
    with httpx.Client(timeout=30.0) as client:
        response = client.post(
            _points_url("/delete"),
            headers=_qdrant_headers(),
            json={"points": [document_id]},
        )
    if response.status_code != 200:
        raise KnowledgeStoreError(f"Qdrant delete error: {response.status_code} - {response.text}")
    logger.info(f"Deleted document {document_id}")
