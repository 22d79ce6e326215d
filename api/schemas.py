from pydantic import BaseModel, Field
from typing import Optional, List

from core.domain import ChatRole, SourceStatus

class Message(BaseModel):
    role: ChatRole
    content: str

class IndexSourceRequest(BaseModel):
    source_name: str = Field(..., min_length=1)
    text: str
    max_chunk_size: Optional[int] = Field(None, gt=0)
    overlap: Optional[int] = Field(None, ge=0)
    min_chunk_size: Optional[int] = Field(None, ge=0)

class IndexSourceResponse(BaseModel):
    source_id: str
    status: SourceStatus
    chunks: int
    error: Optional[str] = None

class SourceItem(BaseModel):
    id: str
    name: str
    status: SourceStatus
    chunk_count: int
    error: Optional[str] = None

class SourcesListResponse(BaseModel):
    sources: List[SourceItem]

class ChunkItem(BaseModel):
    id: str
    source_id: str
    source_name: str
    content: str
    chunk_index: int
    total_chunks: int

class SourceChunksResponse(BaseModel):
    source_id: str
    chunks: List[ChunkItem]

class AskRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=4000)
    enabled_source_ids: List[str] = []
    history: List[Message] = []

class Citation(BaseModel):
    index: int  # 1-based, matches "[Source N]" in the answer
    chunk_id: str
    source_id: str
    source_name: str
    content: str
    score: float

class AskResponse(BaseModel):
    answer: str
    grounded: bool
    citations: List[Citation]
    referenced: List[int]

class SuggestionsRequest(BaseModel):
    enabled_source_ids: List[str] = []
    history: List[Message] = []

class SuggestionsResponse(BaseModel):
    suggestions: List[str]

class DiscoverRequest(BaseModel):
    topic: str = Field(..., min_length=1, max_length=500)

class DiscoveredSourceItem(BaseModel):
    title: str
    link: str
    description: str

class DiscoverResponse(BaseModel):
    summary: str
    sources: List[DiscoveredSourceItem]

class IndexStatsResponse(BaseModel):
    total_chunks: int
    total_sources: int
    average_chunks_per_source: float

class StatusResponse(BaseModel):
    sources_indexed: int = 0
    sources_total: int = 0
    chunks_available: int = 0
    ready_for_queries: bool = False

class DeleteResponse(BaseModel):
    status: str
    message: str
