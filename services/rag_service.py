import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from config import settings
from core.domain import (
    AnswerResult, ChatMessage, ChunkOptions, DiscoveryResult, DocumentChunk, IndexStats,
    SourceIndexResult, SourceRecord, SourceStatus
)
from core.interfaces import ISourceRepository, IVectorStore
from services.answer_synthesizer import AnswerSynthesizer
from services.document_ingestion import DocumentIngestionService
from services.retrieval import RetrievalOrchestrator

logger = logging.getLogger(settings.LOGGER_NAME)


class RAGService:
    """
    Query-facing surface of the RAG core.

    `ask_question` composes retrieval and synthesis; the remaining methods
    manage sources and expose index diagnostics.
    """

    def __init__(
        self,
        vector_store: IVectorStore,
        source_repo: ISourceRepository,
        ingestion: DocumentIngestionService,
        retriever: RetrievalOrchestrator,
        synthesizer: AnswerSynthesizer,
    ):
        self.vector_store = vector_store
        self.source_repo = source_repo
        self.ingestion = ingestion
        self.retriever = retriever
        self.synthesizer = synthesizer

    async def ask_question(
        self,
        query: str,
        enabled_source_ids: Iterable[str],
        conversation_history: Optional[Sequence[ChatMessage]] = None,
        top_k: int = settings.RETRIEVAL_TOP_K,
        min_score: float = settings.SEARCH_MIN_SCORE,
    ) -> AnswerResult:
        """
        Answer a question from the enabled sources.

        Only sources in `indexed` state participate. With none, the answer
        comes from the ungrounded general path. Query-time failures
        (EmbeddingFailed, GenerationFailed) propagate and leave the index
        untouched.
        """
        requested = list(dict.fromkeys(enabled_source_ids))
        indexed = await self.source_repo.filter_by_status(requested, SourceStatus.INDEXED)
        active = [source_id for source_id in requested if source_id in indexed]

        if not active:
            logger.info("[RAG] No indexed sources enabled; answering without grounding")
            return await self.synthesizer.answer_without_sources(query, conversation_history)

        results = await self.retriever.retrieve(query, active, top_k=top_k, min_score=min_score)
        return await self.synthesizer.synthesize(
            query, results, conversation_history, enabled_source_count=len(active)
        )

    async def generate_suggestions(
        self,
        enabled_source_ids: Iterable[str],
        conversation_history: Optional[Sequence[ChatMessage]] = None,
    ) -> List[str]:
        requested = list(dict.fromkeys(enabled_source_ids))
        indexed = await self.source_repo.filter_by_status(requested, SourceStatus.INDEXED)
        return await self.synthesizer.generate_suggestions(len(indexed), conversation_history)

    async def discover_sources(self, topic: str) -> DiscoveryResult:
        return await self.synthesizer.discover_sources(topic.strip())

    async def index_source(
        self,
        source_id: str,
        source_name: str,
        raw_text: str,
        options: Optional[ChunkOptions] = None,
    ) -> SourceIndexResult:
        return await self.ingestion.index_source(source_id, source_name, raw_text, options)

    async def remove_source(self, source_id: str) -> bool:
        return await self.ingestion.remove_source(source_id)

    async def get_source(self, source_id: str) -> Optional[SourceRecord]:
        return await self.source_repo.get_by_id(source_id)

    async def list_sources(self) -> List[SourceRecord]:
        return await self.source_repo.list_all()

    async def get_source_chunks(self, source_ids: Iterable[str]) -> List[DocumentChunk]:
        return await self.vector_store.get_chunks_by_source_ids(source_ids)

    def get_index_stats(self) -> IndexStats:
        return self.vector_store.get_stats()

    async def clear_all(self) -> bool:
        await self.vector_store.clear()
        return await self.source_repo.delete_all()

    async def get_status(self) -> Dict[str, Any]:
        sources = await self.source_repo.list_all()
        indexed = [s for s in sources if s.status == SourceStatus.INDEXED]
        return {
            "sources_indexed": len(indexed),
            "sources_total": len(sources),
            "chunks_available": self.vector_store.get_stats().total_chunks,
            "ready_for_queries": len(indexed) > 0,
        }
