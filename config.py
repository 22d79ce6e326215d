# config.py
"""Application configuration for the notebook RAG service"""
from pydantic_settings import BaseSettings
from utils.common import get_log_file_path

class Settings(BaseSettings):
    """Application configuration"""

    # Logger configuration
    LOGGER_NAME: str = "notebook_rag"
    LOG_FILE_PATH: str = get_log_file_path()
    LOG_LEVEL: str = "INFO"
    LOG_MAX_BYTES: int = 5 * 1024 * 1024  # 5MB per file
    LOG_BACKUP_COUNT: int = 5

    # Database (chunk records + source registry)
    DATABASE_URL: str = "sqlite+aiosqlite:///./notebook.db"

    # Embedding model (384-dimensional sentence embeddings)
    EMBEDDING_MODEL_NAME: str = "all-MiniLM-L6-v2"
    EMBEDDING_BATCH_SIZE: int = 10

    # Chunking (sizes in characters)
    CHUNK_MAX_SIZE: int = 512
    CHUNK_OVERLAP: int = 50  # words carried into the next chunk
    CHUNK_MIN_SIZE: int = 100

    # Search quality controls
    SEARCH_TOP_K: int = 5
    RETRIEVAL_TOP_K: int = 8
    SEARCH_MIN_SCORE: float = 0.3

    # Generation backend (chat-completions API)
    LLM_API_KEY: str = ""
    LLM_BASE_URL: str = "https://openrouter.ai/api/v1"
    LLM_MODEL_NAME: str = "openai/gpt-4o-mini"
    LLM_MAX_TOKENS: int = 2000
    REQUEST_TIMEOUT: int = 60

    # Grounded answers run cold, suggestions run warm
    ANSWER_TEMPERATURE: float = 0.3
    GENERAL_TEMPERATURE: float = 0.7
    SUGGESTION_TEMPERATURE: float = 0.8
    CHAT_CONTEXT_LIMIT: int = 4

    # App metadata
    APP_TITLE: str = "Notebook RAG"
    APP_VERSION: str = "1.0.0"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
