"""Database repository implementations"""
import logging
from typing import List, Optional, Set

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.domain import DocumentChunk, SourceRecord, SourceStatus
from core.interfaces import IChunkRepository, ISourceRepository
from database.session import ChunkEntity, SourceEntity
from config import settings

logger = logging.getLogger(settings.LOGGER_NAME)


class SQLChunkRepository(IChunkRepository):
    """
    Chunk records keyed by chunk id.

    Long-lived (owned by the process-wide vector store), so it opens a
    short session per call instead of holding a request session.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _to_entity(chunk: DocumentChunk) -> ChunkEntity:
        meta = dict(chunk.metadata or {})
        return ChunkEntity(
            id=chunk.id,
            source_id=chunk.source_id,
            source_name=chunk.source_name,
            content=chunk.content,
            chunk_index=int(meta.get("chunk_index", 0)),
            total_chunks=int(meta.get("total_chunks", 1)),
            meta=meta,
            embedding=list(chunk.embedding) if chunk.embedding is not None else None,
        )

    @staticmethod
    def _to_domain(entity: ChunkEntity) -> DocumentChunk:
        # Prevent accidental mutation of DB entity metadata
        md = dict(entity.meta or {})
        md.setdefault("chunk_index", entity.chunk_index)
        md.setdefault("total_chunks", entity.total_chunks)
        return DocumentChunk(
            id=entity.id,  # type: ignore
            source_id=entity.source_id,  # type: ignore
            source_name=entity.source_name,  # type: ignore
            content=entity.content,  # type: ignore
            metadata=md,
            embedding=list(entity.embedding) if entity.embedding is not None else None,
        )

    async def put_all(self, chunks: List[DocumentChunk]) -> None:
        if not chunks:
            return
        async with self._session_factory() as session:
            try:
                for chunk in chunks:
                    await session.merge(self._to_entity(chunk))
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        logger.debug(f"[DB] Upserted {len(chunks)} chunk records")

    async def delete_all(self, chunk_ids: List[str]) -> None:
        if not chunk_ids:
            return
        async with self._session_factory() as session:
            try:
                await session.execute(delete(ChunkEntity).where(ChunkEntity.id.in_(list(chunk_ids))))
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def load_all(self) -> List[DocumentChunk]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(ChunkEntity).order_by(
                    ChunkEntity.timestamp, ChunkEntity.source_id, ChunkEntity.chunk_index
                )
            )
            return [self._to_domain(entity) for entity in result.scalars().all()]

    async def clear(self) -> None:
        async with self._session_factory() as session:
            try:
                await session.execute(delete(ChunkEntity))
                await session.commit()
            except Exception:
                await session.rollback()
                raise


class SQLSourceRepository(ISourceRepository):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    def _to_domain(self, entity: Optional[SourceEntity]) -> Optional[SourceRecord]:
        """Converts an SQLAlchemy entity to a domain model."""
        if entity is None:
            return None
        return SourceRecord(
            id=entity.id,  # type: ignore
            name=entity.name,  # type: ignore
            status=SourceStatus.from_string(entity.status),  # type: ignore
            chunk_count=entity.chunk_count or 0,  # type: ignore
            error=entity.error,  # type: ignore
        )

    async def upsert(self, source_id: str, name: str, status: SourceStatus) -> SourceRecord:
        async with self._session_factory() as session:
            entity = await session.get(SourceEntity, source_id)
            if entity is None:
                entity = SourceEntity(id=source_id, name=name, status=status.value, chunk_count=0)
                session.add(entity)
            else:
                entity.name = name  # type: ignore
                entity.status = status.value  # type: ignore
                entity.error = None  # type: ignore
            await session.commit()
            await session.refresh(entity)
            logger.info(f"[DB] Source {source_id} registered as {status.value}")

            result = self._to_domain(entity)
            assert result is not None, "Upserted source should never be None"
            return result

    async def set_status(
        self,
        source_id: str,
        status: SourceStatus,
        chunk_count: Optional[int] = None,
        error: Optional[str] = None,
    ) -> bool:
        async with self._session_factory() as session:
            entity = await session.get(SourceEntity, source_id)
            if entity is None:
                return False
            entity.status = status.value  # type: ignore
            entity.error = error  # type: ignore
            if chunk_count is not None:
                entity.chunk_count = chunk_count  # type: ignore
            await session.commit()
            return True

    async def get_by_id(self, source_id: str) -> Optional[SourceRecord]:
        async with self._session_factory() as session:
            return self._to_domain(await session.get(SourceEntity, source_id))

    async def list_all(self) -> List[SourceRecord]:
        """List all sources, newest first"""
        async with self._session_factory() as session:
            result = await session.execute(
                select(SourceEntity).order_by(SourceEntity.timestamp.desc())
            )
            records = [self._to_domain(entity) for entity in result.scalars().all()]
            return [r for r in records if r is not None]

    async def delete(self, source_id: str) -> bool:
        async with self._session_factory() as session:
            entity = await session.get(SourceEntity, source_id)
            if not entity:
                return False
            await session.delete(entity)
            await session.commit()
            return True

    async def delete_all(self) -> bool:
        async with self._session_factory() as session:
            try:
                await session.execute(delete(SourceEntity))
                await session.commit()
                return True
            except Exception as e:
                await session.rollback()
                logger.error(f"Failed to clear sources: {e}")
                return False

    async def filter_by_status(self, source_ids: List[str], status: SourceStatus) -> Set[str]:
        if not source_ids:
            return set()
        async with self._session_factory() as session:
            result = await session.execute(
                select(SourceEntity.id).where(
                    SourceEntity.id.in_(list(source_ids)),
                    SourceEntity.status == status.value,
                )
            )
            return {row[0] for row in result}
