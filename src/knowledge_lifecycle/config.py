"""Environment-variable-based configuration."""

import os
from pathlib import Path


def get_db_path() -> Path:
    """Return the database file path from KL_DB_PATH."""
    raw = os.environ.get("KL_DB_PATH", "~/.local/share/knowledge_lifecycle/knowledge.db")
    return Path(raw).expanduser()


def get_embedding_provider() -> str:
    """Return the embedding provider name from KL_EMBEDDING_PROVIDER (ollama or voyage)."""
    return os.environ.get("KL_EMBEDDING_PROVIDER", "ollama").lower()


def get_ollama_url() -> str:
    """Return the Ollama API URL from KL_OLLAMA_URL."""
    return os.environ.get("KL_OLLAMA_URL", "http://localhost:11434")


def get_embedding_model() -> str:
    """Return the Ollama embedding model name from KL_EMBEDDING_MODEL."""
    return os.environ.get("KL_EMBEDDING_MODEL", "qwen3-embedding:0.6b")


def get_embedding_timeout() -> float:
    """Return the embedding request timeout in seconds from KL_EMBEDDING_TIMEOUT."""
    return float(os.environ.get("KL_EMBEDDING_TIMEOUT", "10.0"))


def get_voyage_api_key() -> str | None:
    """Return the Voyage AI API key from KL_VOYAGE_API_KEY."""
    return os.environ.get("KL_VOYAGE_API_KEY") or None


def get_voyage_url() -> str:
    """Return the Voyage AI embeddings endpoint from KL_VOYAGE_URL."""
    return os.environ.get("KL_VOYAGE_URL", "https://api.voyageai.com/v1/embeddings")


def get_voyage_model() -> str:
    """Return the Voyage AI model name from KL_VOYAGE_MODEL."""
    return os.environ.get("KL_VOYAGE_MODEL", "voyage-large-2")


def get_search_limit() -> int:
    """Return the default vector search limit from KL_SEARCH_LIMIT."""
    return int(os.environ.get("KL_SEARCH_LIMIT", "10"))


def get_search_threshold() -> float:
    """Return the default minimum similarity from KL_SEARCH_THRESHOLD."""
    return float(os.environ.get("KL_SEARCH_THRESHOLD", "0.7"))


def is_manager_mode() -> bool:
    """Return True if KL_MANAGER is set to TRUE."""
    return os.environ.get("KL_MANAGER", "").upper() == "TRUE"


def get_log_level() -> str:
    """Return the logging level from KL_LOG_LEVEL."""
    return os.environ.get("KL_LOG_LEVEL", "WARNING")
