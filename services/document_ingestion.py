"""Glues Chunker + Embedder + Vector Index for one source document"""
import logging
from typing import List, Optional

from config import settings
from core.domain import (
    ChunkOptions, DocumentChunk, SourceIndexResult, SourceStatus
)
from core.exceptions import EmbeddingFailed
from core.interfaces import IEmbeddingService, ISourceRepository, IVectorStore
from infrastructure.text_chunker import TextChunker

logger = logging.getLogger(settings.LOGGER_NAME)


def default_chunk_options() -> ChunkOptions:
    return ChunkOptions(
        max_chunk_size=settings.CHUNK_MAX_SIZE,
        overlap=settings.CHUNK_OVERLAP,
        min_chunk_size=settings.CHUNK_MIN_SIZE,
    )


class DocumentIngestionService:
    def __init__(
        self,
        embedding_service: IEmbeddingService,
        vector_store: IVectorStore,
        source_repo: ISourceRepository,
    ):
        self.embedding_service = embedding_service
        self.vector_store = vector_store
        self.source_repo = source_repo

    async def process_document(
        self,
        source_id: str,
        source_name: str,
        raw_text: str,
        options: Optional[ChunkOptions] = None,
    ) -> List[DocumentChunk]:
        """
        Chunk and embed a document. Idempotent: the same source id and text
        always produce the same chunk ids and contents.

        Raises:
            EmbeddingFailed: if any chunk cannot be embedded
        """
        texts = TextChunker(options or default_chunk_options()).chunk(raw_text)
        if not texts:
            return []

        embeddings = await self.embedding_service.generate_embeddings(texts)
        if len(embeddings) != len(texts):
            raise EmbeddingFailed(f"Expected {len(texts)} embeddings, got {len(embeddings)}")

        return [
            DocumentChunk(
                id=DocumentChunk.make_id(source_id, index),
                source_id=source_id,
                source_name=source_name,
                content=text,
                embedding=embedding,
                metadata={"chunk_index": index, "total_chunks": len(texts)},
            )
            for index, (text, embedding) in enumerate(zip(texts, embeddings))
        ]

    async def index_source(
        self,
        source_id: str,
        source_name: str,
        raw_text: str,
        options: Optional[ChunkOptions] = None,
    ) -> SourceIndexResult:
        """
        Index (or re-index) a source. The source is marked `indexed` only
        after all of its chunks are in the vector store. Failures mark the
        source `failed` and are returned, not raised, so one bad document
        never blocks the others.
        """
        await self.source_repo.upsert(source_id, source_name, SourceStatus.INDEXING)

        try:
            chunks = await self.process_document(source_id, source_name, raw_text, options)
        except EmbeddingFailed as e:
            logger.error(f"[RAG] Embedding failed for source '{source_name}' ({source_id}): {e}")
            await self._mark_failed(source_id, str(e))
            return SourceIndexResult(source_id=source_id, status=SourceStatus.FAILED, error=str(e))

        if not chunks:
            error = "No text content to index"
            await self._mark_failed(source_id, error)
            return SourceIndexResult(source_id=source_id, status=SourceStatus.FAILED, error=error)

        # The source may have been deleted while its embeddings were computed
        if await self.source_repo.get_by_id(source_id) is None:
            logger.warning(f"[RAG] Source {source_id} was removed during indexing; discarding chunks")
            return SourceIndexResult(
                source_id=source_id, status=SourceStatus.FAILED, error="Source was removed during indexing"
            )

        try:
            await self.vector_store.remove_chunks_by_source_id(source_id)
            await self.vector_store.add_chunks(chunks)
            await self.source_repo.set_status(source_id, SourceStatus.INDEXED, chunk_count=len(chunks))
        except Exception as e:
            logger.error(f"[RAG] Indexing failed for source '{source_name}' ({source_id}): {e}")
            await self._mark_failed(source_id, str(e))
            return SourceIndexResult(source_id=source_id, status=SourceStatus.FAILED, error=str(e))

        logger.info(f"[RAG] Indexed source '{source_name}' ({source_id}) into {len(chunks)} chunks")
        return SourceIndexResult(source_id=source_id, status=SourceStatus.INDEXED, chunks=len(chunks))

    async def _mark_failed(self, source_id: str, error: str) -> None:
        try:
            await self.source_repo.set_status(source_id, SourceStatus.FAILED, chunk_count=0, error=error)
        except Exception as e:
            logger.error(f"[RAG] Could not record failure for source {source_id}: {e}")

    async def remove_source(self, source_id: str) -> bool:
        """Delete a source's chunks, then its record. Returns False if it was unknown."""
        removed_chunks = await self.vector_store.remove_chunks_by_source_id(source_id)
        removed_record = await self.source_repo.delete(source_id)
        if removed_chunks or removed_record:
            logger.info(f"[RAG] Removed source {source_id} ({removed_chunks} chunks)")
        return bool(removed_chunks or removed_record)
