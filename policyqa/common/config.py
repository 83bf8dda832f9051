"""
Configuration Management for Policy QA

Loads configuration from ~/.policyqa/config.json, .env files and environment
variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger("policyqa.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".policyqa"
CONFIG_PATH = CONFIG_DIR / "config.json"

# Dotenv files read from the working directory, first match wins per key
DOTENV_FILES = (".env.local", ".env")

DEDUP_POLICIES = ("first_seen", "max_similarity")
VECTOR_BACKENDS = ("supabase", "memory")


@dataclass
class SupabaseConfig:
    """Supabase (pgvector) index configuration"""
    url: str = ""
    service_role_key: str = ""
    match_function: str = "match_pdf_embeddings"
    table: str = "pdf_embeddings"


@dataclass
class EmbeddingConfig:
    """Embedding model configuration"""
    provider: str = "openai"
    model: str = ""  # empty selects the provider default
    dimensions: Optional[int] = None
    timeout: float = 30.0


@dataclass
class LLMConfig:
    """Generative model configuration shared by expansion and synthesis"""
    provider: str = "openai"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-sonnet-4-20250514"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"
    temperature: float = 0.1
    max_tokens: int = 1024
    expansion_timeout: float = 20.0
    synthesis_timeout: float = 60.0

    @property
    def model(self) -> str:
        """Model name for the active provider"""
        return {
            "anthropic": self.anthropic_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get(self.provider, "")


@dataclass
class RetrieverConfig:
    """Retrieval tuning knobs"""
    match_threshold: float = 0.1
    match_count: int = 5
    max_expansions: int = 3
    history_window: int = 3
    dedup_policy: str = "first_seen"  # or "max_similarity"
    search_timeout: float = 15.0


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"


@dataclass
class PolicyQAConfig:
    """Main Policy QA configuration"""
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    vector_backend: str = "supabase"  # or "memory"
    _env_sourced_keys: set = field(default_factory=set, repr=False)


def _parse_supabase_config(data: dict) -> SupabaseConfig:
    """Parse supabase section from config dict"""
    supabase_data = data.get("supabase", {})
    return SupabaseConfig(
        url=supabase_data.get("url", ""),
        service_role_key=supabase_data.get("service_role_key", ""),
        match_function=supabase_data.get("match_function", "match_pdf_embeddings"),
        table=supabase_data.get("table", "pdf_embeddings"),
    )


def _parse_embedding_config(data: dict) -> EmbeddingConfig:
    """Parse embedding section from config dict"""
    embedding_data = data.get("embedding", {})
    return EmbeddingConfig(
        provider=embedding_data.get("provider", "openai"),
        model=embedding_data.get("model", ""),
        dimensions=embedding_data.get("dimensions"),
        timeout=float(embedding_data.get("timeout", 30.0)),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    return LLMConfig(
        provider=llm_data.get("provider", "openai"),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", "claude-sonnet-4-20250514"),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", "gpt-4o-mini"),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", "gemini-2.0-flash"),
        temperature=float(llm_data.get("temperature", 0.1)),
        max_tokens=int(llm_data.get("max_tokens", 1024)),
        expansion_timeout=float(llm_data.get("expansion_timeout", 20.0)),
        synthesis_timeout=float(llm_data.get("synthesis_timeout", 60.0)),
    )


def _parse_retriever_config(data: dict) -> RetrieverConfig:
    """Parse retriever section from config dict"""
    retriever_data = data.get("retriever", {})
    return RetrieverConfig(
        match_threshold=float(retriever_data.get("match_threshold", 0.1)),
        match_count=int(retriever_data.get("match_count", 5)),
        max_expansions=int(retriever_data.get("max_expansions", 3)),
        history_window=int(retriever_data.get("history_window", 3)),
        dedup_policy=retriever_data.get("dedup_policy", "first_seen"),
        search_timeout=float(retriever_data.get("search_timeout", 15.0)),
    )


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server section from config dict"""
    server_data = data.get("server", {})
    return ServerConfig(
        host=server_data.get("host", "0.0.0.0"),
        port=int(server_data.get("port", 8000)),
        log_level=server_data.get("log_level", "INFO"),
    )


def _validate(config: PolicyQAConfig) -> None:
    """Reject values the pipeline cannot work with"""
    if config.retriever.dedup_policy not in DEDUP_POLICIES:
        raise ValueError(
            f"Unknown dedup_policy {config.retriever.dedup_policy!r}, "
            f"expected one of {DEDUP_POLICIES}"
        )
    if config.vector_backend not in VECTOR_BACKENDS:
        raise ValueError(
            f"Unknown vector_backend {config.vector_backend!r}, "
            f"expected one of {VECTOR_BACKENDS}"
        )
    if config.retriever.match_count < 1:
        raise ValueError("match_count must be at least 1")
    if config.retriever.max_expansions < 0:
        raise ValueError("max_expansions must not be negative")


def load_config(config_path: Optional[Path] = None) -> PolicyQAConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (including .env.local / .env in the working directory)
    2. Config file (~/.policyqa/config.json)
    3. Default values
    """
    config = PolicyQAConfig()
    path = config_path or CONFIG_PATH

    for dotenv_file in DOTENV_FILES:
        load_dotenv(dotenv_file, override=False)

    # Load from config file if exists
    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)

            config.supabase = _parse_supabase_config(data)
            config.embedding = _parse_embedding_config(data)
            config.llm = _parse_llm_config(data)
            config.retriever = _parse_retriever_config(data)
            config.server = _parse_server_config(data)
            config.vector_backend = data.get("vector_backend", "supabase")
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file %s: %s", path, e)

    # Environment variable overrides
    if os.getenv("SUPABASE_URL"):
        config.supabase.url = os.getenv("SUPABASE_URL")
    if os.getenv("SUPABASE_SERVICE_ROLE_KEY"):
        config.supabase.service_role_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        config._env_sourced_keys.add("service_role_key")

    if os.getenv("EMBEDDING_PROVIDER"):
        config.embedding.provider = os.getenv("EMBEDDING_PROVIDER")
    if os.getenv("EMBEDDING_MODEL"):
        config.embedding.model = os.getenv("EMBEDDING_MODEL")

    if os.getenv("POLICYQA_MATCH_THRESHOLD"):
        config.retriever.match_threshold = float(os.getenv("POLICYQA_MATCH_THRESHOLD"))
    if os.getenv("POLICYQA_MATCH_COUNT"):
        config.retriever.match_count = int(os.getenv("POLICYQA_MATCH_COUNT"))
    if os.getenv("POLICYQA_MAX_EXPANSIONS"):
        config.retriever.max_expansions = int(os.getenv("POLICYQA_MAX_EXPANSIONS"))
    if os.getenv("POLICYQA_DEDUP_POLICY"):
        config.retriever.dedup_policy = os.getenv("POLICYQA_DEDUP_POLICY")

    if os.getenv("POLICYQA_PORT"):
        config.server.port = int(os.getenv("POLICYQA_PORT"))
    if os.getenv("POLICYQA_LOG_LEVEL"):
        config.server.log_level = os.getenv("POLICYQA_LOG_LEVEL")
    if os.getenv("POLICYQA_VECTOR_BACKEND"):
        config.vector_backend = os.getenv("POLICYQA_VECTOR_BACKEND")

    # LLM env var overrides (track env-sourced keys)
    _env_llm_map = {
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
        "POLICYQA_LLM_PROVIDER": "provider",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)
            config._env_sourced_keys.add(attr)

    _validate(config)
    return config


def save_config(config: PolicyQAConfig, config_path: Optional[Path] = None) -> None:
    """Save configuration to file.

    Secrets that were sourced from environment variables are written as
    empty strings so that they are not persisted to disk.
    """
    path = config_path or CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    env_sourced = getattr(config, "_env_sourced_keys", set())

    llm_section = {
        "provider": config.llm.provider,
        "anthropic_api_key": config.llm.anthropic_api_key,
        "anthropic_model": config.llm.anthropic_model,
        "openai_api_key": config.llm.openai_api_key,
        "openai_model": config.llm.openai_model,
        "google_api_key": config.llm.google_api_key,
        "google_model": config.llm.google_model,
        "temperature": config.llm.temperature,
        "max_tokens": config.llm.max_tokens,
        "expansion_timeout": config.llm.expansion_timeout,
        "synthesis_timeout": config.llm.synthesis_timeout,
    }
    for key in ("anthropic_api_key", "openai_api_key", "google_api_key"):
        if key in env_sourced:
            llm_section[key] = ""

    service_role_key = config.supabase.service_role_key
    if "service_role_key" in env_sourced:
        service_role_key = ""

    data = {
        "supabase": {
            "url": config.supabase.url,
            "service_role_key": service_role_key,
            "match_function": config.supabase.match_function,
            "table": config.supabase.table,
        },
        "embedding": {
            "provider": config.embedding.provider,
            "model": config.embedding.model,
            "dimensions": config.embedding.dimensions,
            "timeout": config.embedding.timeout,
        },
        "llm": llm_section,
        "retriever": {
            "match_threshold": config.retriever.match_threshold,
            "match_count": config.retriever.match_count,
            "max_expansions": config.retriever.max_expansions,
            "history_window": config.retriever.history_window,
            "dedup_policy": config.retriever.dedup_policy,
            "search_timeout": config.retriever.search_timeout,
        },
        "server": {
            "host": config.server.host,
            "port": config.server.port,
            "log_level": config.server.log_level,
        },
        "vector_backend": config.vector_backend,
    }

    with open(path, "w") as f:
        json.dump(data, f, indent=2)

    # Set secure permissions
    path.chmod(0o600)
