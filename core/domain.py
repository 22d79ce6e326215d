"""Domain models and shared enumerations for the RAG core."""
from enum import Enum

from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

# ============= Enums =============

class SourceStatus(str, Enum):
    """Indexing lifecycle of a source document."""
    PENDING = "pending"
    INDEXING = "indexing"
    INDEXED = "indexed"
    FAILED = "failed"

    @staticmethod
    def from_string(status: str) -> 'SourceStatus':
        """Convert string to SourceStatus enum."""
        try:
            return SourceStatus(status)
        except ValueError:
            return SourceStatus.FAILED


class ChatRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# ============= Domain Models =============

@dataclass
class ChunkOptions:
    """Chunker tunables (sizes in characters, overlap in words)"""
    max_chunk_size: int = 512
    overlap: int = 50
    min_chunk_size: int = 100


@dataclass
class DocumentChunk:
    """Domain model for document chunks"""
    id: str
    source_id: str
    source_name: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    embedding: Optional[List[float]] = None # Vector of float numbers

    @staticmethod
    def make_id(source_id: str, chunk_index: int) -> str:
        """Deterministic id so re-processing a source yields the same ids."""
        return f"{source_id}-chunk-{chunk_index}"


@dataclass
class ChunkSearchResult:
    """Domain model for search results"""
    chunk: DocumentChunk
    score: float


@dataclass
class IndexStats:
    total_chunks: int
    total_sources: int
    average_chunks_per_source: float


@dataclass
class SourceRecord:
    """Domain model for a registered source document"""
    id: str
    name: str
    status: SourceStatus
    chunk_count: int = 0
    error: Optional[str] = None


@dataclass
class SourceIndexResult:
    """Outcome of indexing one source"""
    source_id: str
    status: SourceStatus
    chunks: int = 0
    error: Optional[str] = None


@dataclass
class ChatMessage:
    """One conversation turn"""
    role: ChatRole
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class AnswerResult:
    """
    Answer text plus the passages it was grounded on.

    `citations` maps the 1-based index used in `[Source N]` markers to the
    search result shown to the model under that number.
    """
    answer_text: str
    cited_results: List[ChunkSearchResult] = field(default_factory=list)
    grounded: bool = False

    @property
    def citations(self) -> Dict[int, ChunkSearchResult]:
        return {index: result for index, result in enumerate(self.cited_results, start=1)}


@dataclass
class DiscoveredSource:
    title: str
    link: str
    description: str


@dataclass
class DiscoveryResult:
    """Topic summary plus suggested external sources"""
    summary: str
    sources: List[DiscoveredSource] = field(default_factory=list)
