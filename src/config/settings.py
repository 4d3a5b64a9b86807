"""Application settings loaded from environment variables via pydantic-settings.

Values are read from two sources, highest priority first:

  1. Environment variables, e.g. ``OLLAMA_BASE_URL=http://gpu-box:11434``
  2. A ``.env`` file in the working directory (local development)

Field names map to upper-cased environment variable names automatically.

The retrieval and chunking constants (window size, similarity threshold,
result count, prompt lengths) are not settings: they live as
module constants next to the code that uses them so stored chunks and
extracted facts stay comparable across deployments.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """policyLens application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Local model server (default backend for both providers) ===
    ollama_base_url: str = "http://localhost:11434"
    ollama_embed_model: str = "nomic-embed-text:latest"
    ollama_chat_model: str = "mistral:7b-instruct-q4_K_M"

    # === OpenAI / OpenAI-compatible APIs ===
    # Empty string = "not configured"; "auto" backend selection skips OpenAI.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_text_model: str = ""
    openai_embedding_model: str = ""

    # === Provider selection ===
    embedding_backend: Literal["auto", "ollama", "openai"] = "auto"
    llm_backend: Literal["auto", "ollama", "openai"] = "auto"
    # Applied to every provider HTTP client.  A hung provider call would
    # otherwise stall the single ingestion worker indefinitely.
    provider_timeout_seconds: float = Field(default=120.0, gt=0)

    # === Storage ===
    database_path: str = "data/policies.db"
    upload_dir: str = "storage/uploads"

    # === Ingestion gate ===
    allow_ingest: bool = False

    # === App Config ===
    app_env: str = "development"
    log_level: str = "INFO"

    def resolve_embedding_backend(self) -> str:
        """Return the concrete embedding backend name for ``auto`` selection."""
        if self.embedding_backend != "auto":
            return self.embedding_backend
        return "openai" if self.openai_api_key else "ollama"

    def resolve_llm_backend(self) -> str:
        """Return the concrete generation backend name for ``auto`` selection."""
        if self.llm_backend != "auto":
            return self.llm_backend
        return "openai" if self.openai_api_key else "ollama"
