"""Sentence-transformer embeddings with lazy model loading and L2 normalization"""
import asyncio
import logging
from typing import List, Optional

import numpy as np
from sentence_transformers import SentenceTransformer

from core.exceptions import EmbeddingFailed
from core.interfaces import IEmbeddingService
from config import settings
from utils.vector_math import l2_normalize

logger = logging.getLogger(settings.LOGGER_NAME)

class SentenceTransformerEmbedding(IEmbeddingService):
    """
    Sentence transformer with L2 normalization (unit vectors).

    The model is loaded on first use, not at construction. Concurrent
    callers arriving before the load finishes wait on the same lock, so
    weights are loaded exactly once per instance. The factory keeps one
    instance per process, making the loaded model a process-wide,
    read-only singleton.

    Large inputs are encoded in sub-batches of `batch_size` to bound peak
    memory; results are reassembled in input order.
    """

    def __init__(
        self,
        model_name: str = settings.EMBEDDING_MODEL_NAME,
        batch_size: int = settings.EMBEDDING_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.model_name = model_name
        self.batch_size = batch_size
        self._model: Optional[SentenceTransformer] = None
        self._load_lock = asyncio.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def _load_model(self) -> SentenceTransformer:
        """Load weights from the local cache, falling back to a download."""
        try:
            logger.info(f"[EMBED] Attempting to load model {self.model_name} from local cache...")
            model = SentenceTransformer(self.model_name, local_files_only=True)
            logger.info(f"[EMBED] Successfully loaded {self.model_name} from local cache.")
            return model
        except Exception as e:
            logger.warning(
                f"[EMBED] Model {self.model_name} not found in cache. Attempting online download. "
                f"This may take a few minutes. Error: {e}"
            )
            model = SentenceTransformer(self.model_name)
            logger.info(f"[EMBED] Successfully downloaded and loaded {self.model_name}.")
            return model

    async def _get_model(self) -> SentenceTransformer:
        if self._model is not None:
            return self._model

        async with self._load_lock:
            if self._model is None:
                try:
                    self._model = await asyncio.to_thread(self._load_model)
                except Exception as e:
                    logger.error(f"[EMBED] Could not load model {self.model_name}: {e}")
                    raise EmbeddingFailed(f"Could not load embedding model: {e}") from e
        return self._model

    @staticmethod
    def _validate(texts: List[str]) -> None:
        for position, text in enumerate(texts):
            if not isinstance(text, str) or not text.strip():
                raise EmbeddingFailed(f"Cannot embed empty or non-text input at position {position}")

    async def _encode(self, model: SentenceTransformer, batch: List[str]) -> np.ndarray:
        try:
            raw = await asyncio.to_thread(
                model.encode,
                batch,
                convert_to_numpy=True,
                show_progress_bar=False,
            )
        except Exception as e:
            logger.error(f"[EMBED] Model inference failed: {e}", exc_info=True)
            raise EmbeddingFailed(f"Embedding inference failed: {e}") from e

        arr = np.asarray(raw, dtype="float32")
        if arr.ndim == 1:
            arr = arr.reshape(1, -1)
        if arr.shape[0] != len(batch):
            raise EmbeddingFailed(
                f"Model returned {arr.shape[0]} vectors for {len(batch)} inputs"
            )
        return l2_normalize(arr)

    async def generate_embeddings(self, texts: List[str]) -> List[List[float]]:
        """Generate L2-normalized embeddings for multiple texts, in order."""
        if not texts:
            return []
        self._validate(texts)
        model = await self._get_model()

        vectors: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            vectors.extend((await self._encode(model, batch)).tolist())

        logger.debug(f"[EMBED] Embedded {len(texts)} texts in batches of {self.batch_size}")
        return vectors

    async def generate_query_embedding(self, query: str) -> List[float]:
        """Generate L2-normalized embedding for a query."""
        self._validate([query])
        model = await self._get_model()
        return (await self._encode(model, [query]))[0].tolist()
