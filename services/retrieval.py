import logging
from typing import Iterable, List

from config import settings
from core.domain import ChunkSearchResult
from core.interfaces import IEmbeddingService, IVectorStore

logger = logging.getLogger(settings.LOGGER_NAME)


class RetrievalOrchestrator:
    """Embeds a query and searches the index within the enabled sources."""

    def __init__(self, embedding_service: IEmbeddingService, vector_store: IVectorStore):
        self.embedding_service = embedding_service
        self.vector_store = vector_store

    async def retrieve(
        self,
        query: str,
        enabled_source_ids: Iterable[str],
        top_k: int = settings.RETRIEVAL_TOP_K,
        min_score: float = settings.SEARCH_MIN_SCORE,
    ) -> List[ChunkSearchResult]:
        source_ids = list(dict.fromkeys(enabled_source_ids))
        if not source_ids:
            # Nothing selected: skip the embedding call entirely
            return []

        query_embedding = await self.embedding_service.generate_query_embedding(query)
        results = await self.vector_store.search(
            query_embedding, top_k=top_k, source_ids=source_ids, min_score=min_score
        )
        logger.info(f"[RAG] Retrieved {len(results)} relevant chunks from {len(source_ids)} sources")
        return results
