"""Core interfaces for the RAG system"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Set

from core.domain import (
    ChunkSearchResult, DocumentChunk, IndexStats, SourceRecord, SourceStatus
)

# ============= Embedding Service Interface =============
class IEmbeddingService(ABC):
    """Interface for embedding generation"""

    @abstractmethod
    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        """Generate one embedding per text, in input order"""
        pass

    @abstractmethod
    async def generate_query_embedding(self, query: str) -> List[float]:
        """Generate embedding for search query"""
        pass

# ============= Chunk Persistence Interface =============
class IChunkRepository(ABC):
    """
    Durable sink behind the in-memory vector index.

    Implementations: SQLChunkRepository. Tests substitute an in-memory fake.
    """

    @abstractmethod
    async def put_all(self, chunks: List[DocumentChunk]) -> None:
        """Bulk upsert chunk records keyed by chunk id"""
        pass

    @abstractmethod
    async def delete_all(self, chunk_ids: List[str]) -> None:
        """Bulk delete chunk records"""
        pass

    @abstractmethod
    async def load_all(self) -> List[DocumentChunk]:
        """Full scan of persisted chunks"""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Delete every chunk record"""
        pass

# ============= Vector Store Interface =============
class IVectorStore(ABC):
    """Interface for vector storage operations"""

    @abstractmethod
    async def initialize(self) -> None:
        """Load persisted chunks (idempotent, never raises)"""
        pass

    @abstractmethod
    async def add_chunks(self, chunks: List[DocumentChunk]) -> None:
        """Upsert document chunks with embeddings"""
        pass

    @abstractmethod
    async def remove_chunks_by_source_id(self, source_id: str) -> int:
        """Delete all chunks for a source, returning how many were removed"""
        pass

    @abstractmethod
    async def search(
        self,
        query_embedding: List[float],
        top_k: int = 5,
        source_ids: Optional[Iterable[str]] = None,
        min_score: float = 0.3,
    ) -> List[ChunkSearchResult]:
        """Search for similar chunks"""
        pass

    @abstractmethod
    async def get_chunks_by_source_ids(self, source_ids: Iterable[str]) -> List[DocumentChunk]:
        """Unscored chunks for the given sources, grouped by source"""
        pass

    @abstractmethod
    def get_stats(self) -> IndexStats:
        """Chunk/source counts"""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Clear all stored vectors"""
        pass

# ============= Source Registry Interface =============
class ISourceRepository(ABC):
    """Interface for source document status persistence"""

    @abstractmethod
    async def upsert(self, source_id: str, name: str, status: SourceStatus) -> SourceRecord:
        """Create or update a source record"""
        pass

    @abstractmethod
    async def set_status(
        self,
        source_id: str,
        status: SourceStatus,
        chunk_count: Optional[int] = None,
        error: Optional[str] = None,
    ) -> bool:
        """Update status; returns False if the source does not exist"""
        pass

    @abstractmethod
    async def get_by_id(self, source_id: str) -> Optional[SourceRecord]:
        pass

    @abstractmethod
    async def list_all(self) -> List[SourceRecord]:
        pass

    @abstractmethod
    async def delete(self, source_id: str) -> bool:
        pass

    @abstractmethod
    async def delete_all(self) -> bool:
        pass

    @abstractmethod
    async def filter_by_status(self, source_ids: List[str], status: SourceStatus) -> Set[str]:
        """
        Return the subset of source_ids currently in `status`.
        Single query replaces N individual lookups.
        """
        pass

# ============= Generation Interface =============
class ILLMService(ABC):
    """Chat-completions style generation backend"""

    @abstractmethod
    async def generate(self, messages: List[Dict[str, str]], temperature: float) -> str:
        """
        Return the model's reply text.

        Raises:
            GenerationFailed: (or a subclass) keyed by failure kind
        """
        pass
