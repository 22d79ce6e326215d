from functools import lru_cache

from config import settings
from core.interfaces import (
    IEmbeddingService, ILLMService, ISourceRepository, IVectorStore
)
from database.session import AsyncSessionLocal
from infrastructure.embedding_services import SentenceTransformerEmbedding
from infrastructure.repositories import SQLChunkRepository, SQLSourceRepository
from infrastructure.vector_store import InMemoryVectorStore
from services.answer_synthesizer import AnswerSynthesizer
from services.document_ingestion import DocumentIngestionService
from services.llm_service import OpenRouterLLMService
from services.rag_service import RAGService
from services.retrieval import RetrievalOrchestrator

# Provider functions for each component. Cached ones are process-wide
# singletons: the loaded model and the in-memory index must not be rebuilt
# per request.

@lru_cache(maxsize=1)
def get_embedding_service() -> IEmbeddingService:
    """Create embedding service based on configuration."""
    return SentenceTransformerEmbedding(settings.EMBEDDING_MODEL_NAME, settings.EMBEDDING_BATCH_SIZE)

@lru_cache(maxsize=1)
def get_vector_store() -> IVectorStore:
    """Create the in-memory vector index backed by the SQL chunk table."""
    return InMemoryVectorStore(repository=SQLChunkRepository(AsyncSessionLocal))

@lru_cache(maxsize=1)
def get_llm_service() -> ILLMService:
    return OpenRouterLLMService()

def get_source_repository() -> ISourceRepository:
    return SQLSourceRepository(AsyncSessionLocal)

def get_rag_service() -> RAGService:
    """
    Create RAG service with full dependency injection.

    FastAPI resolves this per request; override it in tests via
    `app.dependency_overrides[get_rag_service]`.
    """
    embedding_service = get_embedding_service()
    vector_store = get_vector_store()
    source_repo = get_source_repository()
    return RAGService(
        vector_store=vector_store,
        source_repo=source_repo,
        ingestion=DocumentIngestionService(embedding_service, vector_store, source_repo),
        retriever=RetrievalOrchestrator(embedding_service, vector_store),
        synthesizer=AnswerSynthesizer(get_llm_service()),
    )

def clear_instances() -> None:
    """Drop cached singletons (used on shutdown and in tests)."""
    get_embedding_service.cache_clear()
    get_vector_store.cache_clear()
    get_llm_service.cache_clear()
