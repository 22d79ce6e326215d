"""
API endpoints for the notebook RAG service.

Single-user, local tool: no authentication layer.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from config import settings
from core.domain import ChatMessage, ChunkOptions
from core.exceptions import EmbeddingFailed, GenerationErrorKind, GenerationFailed
from services.answer_synthesizer import extract_citation_indices
from services.document_ingestion import default_chunk_options
from services.factory import get_rag_service
from services.rag_service import RAGService
from api.schemas import (
    AskRequest,
    AskResponse,
    ChunkItem,
    Citation,
    DeleteResponse,
    DiscoveredSourceItem,
    DiscoverRequest,
    DiscoverResponse,
    IndexSourceRequest,
    IndexSourceResponse,
    IndexStatsResponse,
    Message,
    SourceChunksResponse,
    SourceItem,
    SourcesListResponse,
    StatusResponse,
    SuggestionsRequest,
    SuggestionsResponse,
)

logger = logging.getLogger(settings.LOGGER_NAME)

router = APIRouter()

_GENERATION_STATUS = {
    GenerationErrorKind.NOT_CONFIGURED: 503,
    GenerationErrorKind.UNAUTHORIZED: 401,
    GenerationErrorKind.QUOTA_EXCEEDED: 402,
    GenerationErrorKind.UNKNOWN: 502,
}


def _to_history(messages: List[Message]) -> List[ChatMessage]:
    return [ChatMessage(role=m.role, content=m.content) for m in messages]


def _chunk_options(request: IndexSourceRequest) -> ChunkOptions:
    defaults = default_chunk_options()
    return ChunkOptions(
        max_chunk_size=request.max_chunk_size or defaults.max_chunk_size,
        overlap=defaults.overlap if request.overlap is None else request.overlap,
        min_chunk_size=defaults.min_chunk_size if request.min_chunk_size is None else request.min_chunk_size,
    )


# ---------- Sources ----------
@router.post("/sources/{source_id}/index", response_model=IndexSourceResponse)
async def index_source(
    source_id: str,
    request: IndexSourceRequest,
    rag_service: RAGService = Depends(get_rag_service),
) -> IndexSourceResponse:
    result = await rag_service.index_source(
        source_id, request.source_name, request.text, _chunk_options(request)
    )
    return IndexSourceResponse(
        source_id=result.source_id, status=result.status, chunks=result.chunks, error=result.error
    )


@router.get("/sources", response_model=SourcesListResponse)
async def list_sources(rag_service: RAGService = Depends(get_rag_service)) -> SourcesListResponse:
    sources = await rag_service.list_sources()
    return SourcesListResponse(sources=[
        SourceItem(id=s.id, name=s.name, status=s.status, chunk_count=s.chunk_count, error=s.error)
        for s in sources
    ])


@router.get("/sources/{source_id}", response_model=SourceItem)
async def get_source(source_id: str, rag_service: RAGService = Depends(get_rag_service)) -> SourceItem:
    source = await rag_service.get_source(source_id)
    if source is None:
        raise HTTPException(status_code=404, detail="Source not found")
    return SourceItem(
        id=source.id, name=source.name, status=source.status,
        chunk_count=source.chunk_count, error=source.error,
    )


@router.get("/sources/{source_id}/chunks", response_model=SourceChunksResponse)
async def get_source_chunks(
    source_id: str,
    rag_service: RAGService = Depends(get_rag_service),
) -> SourceChunksResponse:
    chunks = await rag_service.get_source_chunks([source_id])
    chunks.sort(key=lambda c: c.metadata.get("chunk_index", 0))
    return SourceChunksResponse(source_id=source_id, chunks=[
        ChunkItem(
            id=c.id,
            source_id=c.source_id,
            source_name=c.source_name,
            content=c.content,
            chunk_index=c.metadata.get("chunk_index", 0),
            total_chunks=c.metadata.get("total_chunks", len(chunks)),
        )
        for c in chunks
    ])


@router.delete("/sources/{source_id}", response_model=DeleteResponse)
async def delete_source(source_id: str, rag_service: RAGService = Depends(get_rag_service)) -> DeleteResponse:
    if not await rag_service.remove_source(source_id):
        raise HTTPException(status_code=404, detail="Source not found")
    return DeleteResponse(status="success", message="Source deleted successfully")


# ---------- Chat ----------
@router.post("/ask", response_model=AskResponse)
async def ask_question(request: AskRequest, rag_service: RAGService = Depends(get_rag_service)) -> AskResponse:
    if not request.question.strip():
        raise HTTPException(status_code=422, detail="Please enter a query.")

    try:
        result = await rag_service.ask_question(
            request.question, request.enabled_source_ids, _to_history(request.history)
        )
    except EmbeddingFailed as e:
        logger.error(f"Query embedding failed: {e}")
        raise HTTPException(status_code=500, detail="Failed to process the query. Please try again.")
    except GenerationFailed as e:
        raise HTTPException(status_code=_GENERATION_STATUS[e.kind], detail=e.user_message)

    citations = [
        Citation(
            index=index,
            chunk_id=hit.chunk.id,
            source_id=hit.chunk.source_id,
            source_name=hit.chunk.source_name,
            content=hit.chunk.content,
            score=hit.score,
        )
        for index, hit in result.citations.items()
    ]
    return AskResponse(
        answer=result.answer_text,
        grounded=result.grounded,
        citations=citations,
        referenced=extract_citation_indices(result.answer_text, len(citations)) if result.grounded else [],
    )


@router.post("/suggestions", response_model=SuggestionsResponse)
async def suggestions(
    request: SuggestionsRequest,
    rag_service: RAGService = Depends(get_rag_service),
) -> SuggestionsResponse:
    items = await rag_service.generate_suggestions(request.enabled_source_ids, _to_history(request.history))
    return SuggestionsResponse(suggestions=items)


@router.post("/discover", response_model=DiscoverResponse)
async def discover_sources(
    request: DiscoverRequest,
    rag_service: RAGService = Depends(get_rag_service),
) -> DiscoverResponse:
    if not request.topic.strip():
        raise HTTPException(status_code=422, detail="Please enter a topic.")

    try:
        result = await rag_service.discover_sources(request.topic)
    except GenerationFailed as e:
        raise HTTPException(status_code=_GENERATION_STATUS[e.kind], detail=e.user_message)

    return DiscoverResponse(
        summary=result.summary,
        sources=[
            DiscoveredSourceItem(title=s.title, link=s.link, description=s.description)
            for s in result.sources
        ],
    )


# ---------- Index diagnostics ----------
@router.get("/index/stats", response_model=IndexStatsResponse)
async def index_stats(rag_service: RAGService = Depends(get_rag_service)) -> IndexStatsResponse:
    stats = rag_service.get_index_stats()
    return IndexStatsResponse(
        total_chunks=stats.total_chunks,
        total_sources=stats.total_sources,
        average_chunks_per_source=stats.average_chunks_per_source,
    )


@router.delete("/index", response_model=DeleteResponse)
async def clear_index(rag_service: RAGService = Depends(get_rag_service)) -> DeleteResponse:
    if not await rag_service.clear_all():
        raise HTTPException(status_code=500, detail="Failed to clear sources")
    return DeleteResponse(status="success", message="All sources and chunks cleared successfully")


@router.get("/status", response_model=StatusResponse)
async def get_status(rag_service: RAGService = Depends(get_rag_service)) -> StatusResponse:
    return StatusResponse(**(await rag_service.get_status()))
