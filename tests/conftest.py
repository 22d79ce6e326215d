"""
Shared test fixtures and fakes for the RAG core test suite.

Provides: in-memory chunk repository, deterministic bag-of-words embedder,
scripted LLM backend, in-memory source registry, fully wired RAGService.
Dependencies: pytest, pytest-asyncio
"""

import asyncio
import re
from typing import Dict, List, Optional, Set

import numpy as np
import pytest

from core.domain import DocumentChunk, SourceRecord, SourceStatus
from core.exceptions import EmbeddingFailed
from core.interfaces import (
    IChunkRepository, IEmbeddingService, ILLMService, ISourceRepository
)
from infrastructure.vector_store import InMemoryVectorStore
from services.answer_synthesizer import AnswerSynthesizer
from services.document_ingestion import DocumentIngestionService
from services.rag_service import RAGService
from services.retrieval import RetrievalOrchestrator

EMBEDDING_DIM = 384

_WORD = re.compile(r"[a-z0-9]+")


class InMemoryChunkRepository(IChunkRepository):
    """Durability sink fake; can be told to fail every call."""

    def __init__(self, fail: bool = False):
        self.records: Dict[str, DocumentChunk] = {}
        self.fail = fail
        self.calls: List[str] = []

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if self.fail:
            raise RuntimeError(f"disk unavailable during {op}")

    async def put_all(self, chunks: List[DocumentChunk]) -> None:
        self._check("put_all")
        for chunk in chunks:
            self.records[chunk.id] = chunk

    async def delete_all(self, chunk_ids: List[str]) -> None:
        self._check("delete_all")
        for chunk_id in chunk_ids:
            self.records.pop(chunk_id, None)

    async def load_all(self) -> List[DocumentChunk]:
        self._check("load_all")
        return list(self.records.values())

    async def clear(self) -> None:
        self._check("clear")
        self.records.clear()


class BlockingChunkRepository(InMemoryChunkRepository):
    """Holds every write on `gate` while it is cleared; `blocked` fires on entry."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.gate.set()
        self.blocked = asyncio.Event()

    async def _hold(self) -> None:
        if not self.gate.is_set():
            self.blocked.set()
            await self.gate.wait()

    async def put_all(self, chunks: List[DocumentChunk]) -> None:
        await self._hold()
        await super().put_all(chunks)

    async def delete_all(self, chunk_ids: List[str]) -> None:
        await self._hold()
        await super().delete_all(chunk_ids)


class BagOfWordsEmbedding(IEmbeddingService):
    """
    Deterministic embedder: each distinct word gets its own dimension
    (first-seen order), vectors are word counts scaled to unit length.
    """

    def __init__(self, dim: int = EMBEDDING_DIM):
        self.dim = dim
        self.vocabulary: Dict[str, int] = {}
        self.query_calls = 0
        self.batch_calls = 0
        self.fail_on: Optional[str] = None

    def embed(self, text: str) -> List[float]:
        if self.fail_on is not None and self.fail_on in text:
            raise EmbeddingFailed(f"cannot embed text containing {self.fail_on!r}")
        vec = np.zeros(self.dim, dtype=np.float64)
        for word in _WORD.findall(text.lower()):
            index = self.vocabulary.setdefault(word, len(self.vocabulary) % self.dim)
            vec[index] += 1.0
        norm = np.linalg.norm(vec)
        return (vec / norm if norm else vec).tolist()

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        self.batch_calls += 1
        return [self.embed(t) for t in texts]

    async def generate_query_embedding(self, query: str) -> List[float]:
        self.query_calls += 1
        return self.embed(query)


class ScriptedLLM(ILLMService):
    """Returns queued replies (or raises queued errors) and records every call."""

    def __init__(self, replies: Optional[List[object]] = None, default: str = "ok"):
        self.replies = list(replies or [])
        self.default = default
        self.calls: List[Dict[str, object]] = []

    async def generate(self, messages: List[Dict[str, str]], temperature: float) -> str:
        self.calls.append({"messages": messages, "temperature": temperature})
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return str(reply)


class InMemorySourceRepository(ISourceRepository):
    def __init__(self):
        self.sources: Dict[str, SourceRecord] = {}

    async def upsert(self, source_id: str, name: str, status: SourceStatus) -> SourceRecord:
        record = self.sources.get(source_id)
        if record is None:
            record = SourceRecord(id=source_id, name=name, status=status)
            self.sources[source_id] = record
        else:
            record.name = name
            record.status = status
            record.error = None
        return record

    async def set_status(self, source_id, status, chunk_count=None, error=None) -> bool:
        record = self.sources.get(source_id)
        if record is None:
            return False
        record.status = status
        record.error = error
        if chunk_count is not None:
            record.chunk_count = chunk_count
        return True

    async def get_by_id(self, source_id: str) -> Optional[SourceRecord]:
        return self.sources.get(source_id)

    async def list_all(self) -> List[SourceRecord]:
        return list(self.sources.values())

    async def delete(self, source_id: str) -> bool:
        return self.sources.pop(source_id, None) is not None

    async def delete_all(self) -> bool:
        self.sources.clear()
        return True

    async def filter_by_status(self, source_ids: List[str], status: SourceStatus) -> Set[str]:
        return {
            sid for sid in source_ids
            if sid in self.sources and self.sources[sid].status == status
        }


def make_chunk(
    source_id: str,
    index: int,
    embedding: Optional[List[float]],
    content: Optional[str] = None,
    source_name: Optional[str] = None,
) -> DocumentChunk:
    return DocumentChunk(
        id=DocumentChunk.make_id(source_id, index),
        source_id=source_id,
        source_name=source_name or f"{source_id}.pdf",
        content=content or f"content of {source_id} chunk {index}",
        metadata={"chunk_index": index, "total_chunks": 1},
        embedding=embedding,
    )


def topic_paragraph(words: str, repeats: int) -> str:
    return " ".join([words] * repeats)


# Three single-topic paragraphs, ~1.3k characters in total
THREE_TOPIC_DOCUMENT = "\n\n".join([
    topic_paragraph("apple orchard harvest", 20),
    topic_paragraph("ocean tide sailing", 20),
    topic_paragraph("mountain glacier climbing", 18),
])


@pytest.fixture
def chunk_repository() -> InMemoryChunkRepository:
    return InMemoryChunkRepository()


@pytest.fixture
def embedder() -> BagOfWordsEmbedding:
    return BagOfWordsEmbedding()


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM(default="Answer citing [Source 1].")


@pytest.fixture
def source_repo() -> InMemorySourceRepository:
    return InMemorySourceRepository()


@pytest.fixture
def vector_store(chunk_repository: InMemoryChunkRepository) -> InMemoryVectorStore:
    return InMemoryVectorStore(repository=chunk_repository)


@pytest.fixture
def ingestion(embedder, vector_store, source_repo) -> DocumentIngestionService:
    return DocumentIngestionService(embedder, vector_store, source_repo)


@pytest.fixture
def rag_service(embedder, vector_store, source_repo, ingestion, llm) -> RAGService:
    return RAGService(
        vector_store=vector_store,
        source_repo=source_repo,
        ingestion=ingestion,
        retriever=RetrievalOrchestrator(embedder, vector_store),
        synthesizer=AnswerSynthesizer(llm, answer_temperature=0.3, general_temperature=0.7,
                                      suggestion_temperature=0.8, history_limit=4),
    )
