"""Centralized configuration for the link-guard service.

All settings are loaded from environment variables (or .env file).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(_PROJECT_ROOT / ".env")


def _env_bool(name: str, default: bool) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    return val.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class LinkGuardConfig:
    """Link sanitization pipeline configuration."""

    debug: bool = field(default_factory=lambda: _env_bool("LINK_DEBUG", False))
    trace_limit: int = field(default_factory=lambda: int(os.getenv("LINK_TRACE_LIMIT", "50")))
    probe_timeout: float = field(
        default_factory=lambda: float(os.getenv("LINK_PROBE_TIMEOUT", "8"))
    )
    max_redirects: int = field(
        default_factory=lambda: int(os.getenv("LINK_MAX_REDIRECTS", "5"))
    )
    cache_ttl_seconds: float = field(
        default_factory=lambda: float(os.getenv("LINK_CACHE_TTL", "1800"))
    )
    cache_max_entries: int = field(
        default_factory=lambda: int(os.getenv("LINK_CACHE_MAX_ENTRIES", "10000"))
    )
    user_agent: str = field(
        default_factory=lambda: os.getenv("LINK_USER_AGENT", "LinkHealth/1.1")
    )
    policy_path: str = field(default_factory=lambda: os.getenv("LINK_POLICY_PATH", ""))


@dataclass
class LLMConfig:
    """LLM provider configuration."""

    provider: str = field(default_factory=lambda: os.getenv("LLM_PROVIDER", "openai"))

    # OpenAI
    openai_api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    openai_model: str = field(
        default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-5-chat-latest")
    )

    # Google Gemini
    google_api_key: str = field(default_factory=lambda: os.getenv("GOOGLE_API_KEY", ""))
    google_model: str = field(
        default_factory=lambda: os.getenv("GOOGLE_MODEL", "gemini-2.0-flash")
    )

    # vLLM (OpenAI-compatible)
    vllm_base_url: str = field(
        default_factory=lambda: os.getenv("VLLM_BASE_URL", "http://localhost:8000/v1")
    )
    vllm_model: str = field(
        default_factory=lambda: os.getenv("VLLM_MODEL", "meta-llama/Llama-3.1-8B-Instruct")
    )

    max_tokens: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_TOKENS", "2600")))
    temperature: float = field(
        default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.6"))
    )


@dataclass
class RAGConfig:
    """Greenlist retrieval configuration."""

    chroma_persist_dir: str = field(
        default_factory=lambda: os.getenv("CHROMA_PERSIST_DIR", "./data/chroma")
    )
    embedding_model: str = field(
        default_factory=lambda: os.getenv("EMBEDDING_MODEL", "all-MiniLM-L6-v2")
    )
    collection_name: str = field(
        default_factory=lambda: os.getenv("GREENLIST_COLLECTION", "greenlist")
    )
    greenlist_path: str = field(
        default_factory=lambda: os.getenv(
            "GREENLIST_PATH",
            str(_PROJECT_ROOT / "data" / "urls.json"),
        )
    )
    top_k: int = field(default_factory=lambda: int(os.getenv("RAG_TOP_K", "10")))
    max_context_urls: int = field(
        default_factory=lambda: int(os.getenv("RAG_MAX_CONTEXT_URLS", "8"))
    )


@dataclass
class AuditConfig:
    """Link decision audit and interaction log configuration."""

    enabled: bool = field(default_factory=lambda: _env_bool("LINK_AUDIT_ENABLED", True))
    path: str = field(
        default_factory=lambda: os.getenv(
            "LINK_AUDIT_PATH",
            str(_PROJECT_ROOT / "data" / "logs" / "link-fixes.jsonl"),
        )
    )
    interaction_log_path: str = field(
        default_factory=lambda: os.getenv(
            "INTERACTION_LOG_PATH",
            str(_PROJECT_ROOT / "data" / "logs" / "interactions.jsonl"),
        )
    )


@dataclass
class APIConfig:
    """HTTP API runtime configuration."""

    host: str = field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("API_PORT", "8080")))
    debug: bool = field(default_factory=lambda: _env_bool("API_DEBUG", False))
    max_body_bytes: int = field(
        default_factory=lambda: int(os.getenv("API_MAX_BODY_BYTES", str(1024 * 1024)))
    )


@dataclass
class AppConfig:
    """Top-level application configuration."""

    links: LinkGuardConfig = field(default_factory=LinkGuardConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    rag: RAGConfig = field(default_factory=RAGConfig)
    audit: AuditConfig = field(default_factory=AuditConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for CLI and server entry points."""
    logging.basicConfig(
        level=(level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Singleton config instance
config = AppConfig()
