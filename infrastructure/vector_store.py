import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from core.domain import ChunkSearchResult, DocumentChunk, IndexStats
from core.exceptions import IncompatibleDimensions, PersistenceUnavailable
from core.interfaces import IChunkRepository, IVectorStore
from config import settings
from utils.vector_math import cosine_similarity

logger = logging.getLogger(settings.LOGGER_NAME)

PersistenceErrorListener = Callable[[PersistenceUnavailable], None]


class InMemoryVectorStore(IVectorStore):
    """
    In-memory chunk index with write-behind persistence.

    Two tiers:
    - `_chunks` (chunk_id → chunk) and `_source_chunks` (source_id → chunk ids)
      are the authoritative read path; every search is a linear cosine scan.
    - An IChunkRepository receives each mutation after the maps are updated.
      Its failures are logged and reported as PersistenceUnavailable to
      `on_persistence_error`, never raised: the index is a derived cache
      that can be rebuilt by re-indexing sources.

    Mutations hold `_lock` and finish their in-memory work before the first
    await, so a concurrent search sees either all or none of a batch.
    """

    def __init__(
        self,
        repository: Optional[IChunkRepository] = None,
        on_persistence_error: Optional[PersistenceErrorListener] = None,
    ):
        self._repository = repository
        self._on_persistence_error = on_persistence_error
        self._chunks: Dict[str, DocumentChunk] = {}
        # Dict used as an insertion-ordered set
        self._source_chunks: Dict[str, Dict[str, None]] = {}
        self._dimension: Optional[int] = None
        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._lock = asyncio.Lock()  # Protects all mutations

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    # ============= Persistence helpers =============

    def _report(self, operation: str, error: Exception) -> None:
        failure = PersistenceUnavailable(operation, error)
        logger.error(f"[INDEX] {failure}")
        if self._on_persistence_error:
            self._on_persistence_error(failure)

    async def _persist(self, operation: str, action: Callable[[], Awaitable[None]]) -> None:
        if self._repository is None:
            return
        try:
            await action()
        except Exception as e:
            self._report(operation, e)

    # ============= In-memory helpers =============

    def _index_chunk(self, chunk: DocumentChunk) -> None:
        previous = self._chunks.get(chunk.id)
        if previous is not None and previous.source_id != chunk.source_id:
            self._unlink(previous.source_id, chunk.id)

        self._chunks[chunk.id] = chunk
        self._source_chunks.setdefault(chunk.source_id, {})[chunk.id] = None

        if chunk.embedding is not None and self._dimension is None:
            self._dimension = len(chunk.embedding)

    def _unlink(self, source_id: str, chunk_id: str) -> None:
        owned = self._source_chunks.get(source_id)
        if owned is None:
            return
        owned.pop(chunk_id, None)
        if not owned:
            del self._source_chunks[source_id]

    def _check_dimensions(self, chunks: List[DocumentChunk]) -> None:
        expected = self._dimension
        for chunk in chunks:
            if chunk.embedding is None:
                raise ValueError(f"Chunk {chunk.id} has no embedding and cannot be indexed")
            if expected is None:
                expected = len(chunk.embedding)
            elif len(chunk.embedding) != expected:
                raise IncompatibleDimensions(expected, len(chunk.embedding))

    # ============= Public API =============

    async def initialize(self) -> None:
        """Load persisted chunks once. Load failures leave an empty index."""
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return

            if self._repository is not None:
                try:
                    records = await self._repository.load_all()
                    for chunk in records:
                        self._index_chunk(chunk)
                except Exception as e:
                    self._report("load_all", e)

            self._initialized = True
            logger.info(f"[INDEX] Vector store initialized with {len(self._chunks)} chunks")

    async def add_chunks(self, chunks: List[DocumentChunk]) -> None:
        """Upsert chunks by id. Visible to search immediately, durable after persistence."""
        await self.initialize()
        if not chunks:
            return

        async with self._lock:
            self._check_dimensions(chunks)
            for chunk in chunks:
                self._index_chunk(chunk)
            await self._persist("put_all", lambda: self._repository.put_all(chunks))

        logger.info(f"[INDEX] Added {len(chunks)} chunks to vector store")

    async def remove_chunks_by_source_id(self, source_id: str) -> int:
        await self.initialize()

        async with self._lock:
            owned = self._source_chunks.pop(source_id, None)
            if not owned:
                return 0

            chunk_ids = list(owned)
            for chunk_id in chunk_ids:
                self._chunks.pop(chunk_id, None)
            if not self._chunks:
                self._dimension = None

            await self._persist("delete_all", lambda: self._repository.delete_all(chunk_ids))

        logger.info(f"[INDEX] Removed {len(chunk_ids)} chunks for source {source_id}")
        return len(chunk_ids)

    async def search(
        self,
        query_embedding: List[float],
        top_k: int = settings.SEARCH_TOP_K,
        source_ids: Optional[Iterable[str]] = None,
        min_score: float = settings.SEARCH_MIN_SCORE,
    ) -> List[ChunkSearchResult]:
        """
        Linear cosine scan over the candidate set.

        Candidates are every chunk, or only chunks of `source_ids` when that
        allow-list is non-empty. Results below `min_score` are dropped; the
        rest are sorted by score descending (ties keep insertion order) and
        cut to `top_k`. No match is an empty list, not an error.
        """
        await self.initialize()
        if top_k <= 0:
            return []

        allowed = set(source_ids) if source_ids else None
        if allowed is None:
            candidates = list(self._chunks.values())
        else:
            candidates = [c for c in self._chunks.values() if c.source_id in allowed]

        results: List[ChunkSearchResult] = []
        for chunk in candidates:
            if chunk.embedding is None:
                continue
            score = cosine_similarity(query_embedding, chunk.embedding)
            if score >= min_score:
                results.append(ChunkSearchResult(chunk=chunk, score=score))

        # list.sort is stable: equal scores keep scan order
        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]

    async def get_chunks_by_source_ids(self, source_ids: Iterable[str]) -> List[DocumentChunk]:
        await self.initialize()

        chunks: List[DocumentChunk] = []
        for source_id in source_ids:
            for chunk_id in self._source_chunks.get(source_id, {}):
                chunk = self._chunks.get(chunk_id)
                if chunk is not None:
                    chunks.append(chunk)
        return chunks

    def get_stats(self) -> IndexStats:
        total_chunks = len(self._chunks)
        total_sources = len(self._source_chunks)
        average = total_chunks / total_sources if total_sources > 0 else 0
        return IndexStats(
            total_chunks=total_chunks,
            total_sources=total_sources,
            average_chunks_per_source=round(average, 1),
        )

    async def clear(self) -> None:
        """Empty the index and the persisted store. Irreversible."""
        async with self._lock:
            self._chunks.clear()
            self._source_chunks.clear()
            self._dimension = None
            self._initialized = True
            await self._persist("clear", lambda: self._repository.clear())

        logger.info("[INDEX] Vector store cleared")
