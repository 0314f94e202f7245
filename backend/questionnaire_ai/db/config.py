# backend/questionnaire_ai/db/config.py
from __future__ import annotations
import logging
import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env before reading settings
load_dotenv()

logger = logging.getLogger("qa.db.config")


def _default_ollama_host() -> str:
    if os.path.exists("/.dockerenv"):
        return "http://ollama:11434"
    return "http://127.0.0.1:11434"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(case_sensitive=False, extra="ignore")

    # --- Postgres / pgvector ---
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_name: str = "ragdb"
    knowledge_table: str = "knowledge_items"

    # --- Ollama ---
    ollama_host: str = Field(default_factory=_default_ollama_host)
    parsing_model: str = "llama3.2:3b"
    answer_model: str = "llama3.2:3b"
    vision_model: str = "llama3.2-vision"
    llm_timeout: int = 180

    # --- Embeddings / retrieval ---
    embedding_backend: Literal["ollama", "hash"] = "ollama"
    embedding_model: str = "nomic-embed-text"
    embedding_dim: int = 768
    retriever_backend: Literal["pgvector", "memory"] = "pgvector"
    rag_top_k: int = Field(5, ge=1)
    rag_min_similarity: float = 0.2
    knowledge_seed_path: str | None = None

    # --- Chunking / parsing ---
    max_chunk_chars: int = Field(80_000, ge=1)
    min_chunk_chars: int = Field(5_000, ge=1)
    max_questions_per_chunk: int = Field(1, ge=1)
    question_rules: Literal["default", "extended"] = "default"
    chunk_failure_policy: Literal["fail_fast", "collect_all"] = "fail_fast"

    # --- Concurrency ---
    parse_concurrency: int = Field(8, ge=1)
    answer_concurrency: int = Field(8, ge=1)

    log_level: str = "INFO"

    @field_validator("ollama_host")
    @classmethod
    def _strip_host(cls, v: str) -> str:
        return v.strip().rstrip("/")

    @property
    def database_url(self) -> str:
        return (
            f"postgresql://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )


# Instantiate settings once
settings = Settings()
