"""
Configuration loader for the Pine Script generation service.

Loads configuration from config.yaml and environment variables using pydantic-settings.
Supports llm/pipeline sections.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMProvider(str, Enum):
    """Supported LLM providers."""

    OPENROUTER = "openrouter"
    LANGCHAIN = "langchain"
    ANTHROPIC = "anthropic"


class LLMConfig(BaseModel):
    """
    LLM provider configuration.

    Note: API keys should NOT be stored here.
    Use environment variables (OPENROUTER_API_KEY, ANTHROPIC_API_KEY).
    """

    provider: LLMProvider = Field(
        default=LLMProvider.OPENROUTER,
        description="LLM provider to use",
    )
    model: str = Field(
        default="google/gemini-2.5-pro",
        description="Default model identifier when a request does not select one",
    )
    site_url: Optional[str] = Field(
        default=None,
        description="Site URL for OpenRouter HTTP-Referer header",
    )
    site_name: Optional[str] = Field(
        default=None,
        description="Site name for OpenRouter X-Title header",
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=2.0,
        description="Default temperature when a call does not override it",
    )
    max_tokens: int = Field(
        default=8000,
        gt=0,
        description="Default maximum tokens to generate",
    )
    max_context_tokens: int = Field(
        default=128000,
        gt=0,
        description="Maximum context tokens the model supports",
    )
    reasoning_enabled: bool = Field(
        default=True,
        description="Forward per-call reasoning budgets to the provider",
    )
    request_timeout_seconds: float = Field(
        default=120.0,
        gt=0.0,
        description="Timeout for a single completion call",
    )


class PipelineConfig(BaseModel):
    """
    Generation pipeline configuration.

    Per-call sampling settings for the four completion calls the pipeline makes
    (generate, refine, enhance, analyze document) plus the expert-mode fallback.

    Example config.yaml:
        pipeline:
          default_version: v6
          expert_model_markers: ["pro"]
          enhance_model: google/gemini-2.5-pro   # omit to use llm.model
          analysis_model: google/gemini-2.5-flash
    """

    default_version: str = Field(
        default="v6",
        description="Pine Script version used when a request omits one",
    )
    expert_model_markers: list[str] = Field(
        default_factory=lambda: ["pro"],
        description="Model selector substrings that imply the expert tier "
                    "when a request has no explicit capability_tier",
    )
    generation_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    generation_max_tokens: int = Field(default=32000, gt=0)
    generation_reasoning_budget: int = Field(
        default=2048,
        ge=0,
        description="Reasoning token budget for expert-tier generation (0 disables)",
    )
    refinement_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    refinement_max_tokens: int = Field(default=32000, gt=0)
    refinement_reasoning_budget: int = Field(
        default=1024,
        ge=0,
        description="Reasoning token budget for expert-tier refinement (0 disables)",
    )
    enhance_model: Optional[str] = Field(
        default=None,
        description="Model used for prompt enhancement (None = llm.model)",
    )
    enhance_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    enhance_max_tokens: int = Field(default=2048, gt=0)
    analysis_model: Optional[str] = Field(
        default=None,
        description="Multimodal model used for document analysis (None = llm.model)",
    )
    analysis_temperature: float = Field(default=0.1, ge=0.0, le=2.0)
    analysis_max_tokens: int = Field(default=8192, gt=0)
    max_document_bytes: int = Field(
        default=20 * 1024 * 1024,
        gt=0,
        description="Largest document accepted for analysis",
    )
    max_sessions: int = Field(
        default=256,
        ge=1,
        description="Refinement sessions kept in memory before the oldest is evicted",
    )

    @field_validator("default_version")
    @classmethod
    def validate_default_version(cls, v: str) -> str:
        """Require at least one digit so a version tag can be built."""
        if not any(ch.isdigit() for ch in v):
            raise ValueError(f"default_version must contain a version number, got '{v}'")
        return v

    @field_validator("expert_model_markers")
    @classmethod
    def normalize_markers(cls, v: list[str]) -> list[str]:
        """Lowercase markers and drop blanks."""
        return [m.strip().lower() for m in v if m.strip()]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables and config.yaml.

    Priority (highest to lowest):
    1. Environment variables (from .env file or system)
    2. config.yaml file
    3. Default values

    Secrets (loaded from .env only - NEVER commit to git):
        - OPENROUTER_API_KEY: OpenRouter API key (also used by the langchain provider)
        - ANTHROPIC_API_KEY: Anthropic Claude API key
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(
        default="Pine Script Generation Service",
        description="Application name",
    )
    app_version: str = Field(
        default="0.1.0",
        description="Application version",
    )
    debug: bool = Field(
        default=False,
        description="Debug mode",
        alias="APP_DEBUG",
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level",
    )

    @field_validator("debug", mode="before")
    @classmethod
    def parse_debug_bool(cls, v):
        """Handle empty string as False for boolean debug field."""
        if v == "" or v is None:
            return False
        if isinstance(v, str):
            return v.lower() in ("true", "1", "yes", "on")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept standard level names in any case."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    # LLM API Keys (from .env)
    openrouter_api_key: str = Field(
        default="",
        description="OpenRouter API key",
    )
    anthropic_api_key: str = Field(
        default="",
        description="Anthropic API key",
    )

    # Configuration sections (from config.yaml)
    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM provider configuration",
    )
    pipeline: PipelineConfig = Field(
        default_factory=PipelineConfig,
        description="Generation pipeline configuration",
    )

    @model_validator(mode="after")
    def validate_pipeline_models(self) -> "Settings":
        """
        Reject pipeline model ids the native Anthropic API cannot serve.

        OpenRouter ids such as "google/gemini-2.5-flash" only resolve through
        OpenRouter; "anthropic/..." ids have their prefix stripped by the adapter.
        """
        if self.llm.provider != LLMProvider.ANTHROPIC:
            return self
        for name in ("enhance_model", "analysis_model"):
            model_id = getattr(self.pipeline, name)
            if model_id and "/" in model_id and not model_id.startswith("anthropic/"):
                raise ValueError(
                    f"pipeline.{name} '{model_id}' is not an Anthropic model; "
                    f"unset it to use llm.model or name a Claude model"
                )
        return self

    def get_llm_api_key(self) -> str:
        """
        Get the appropriate API key based on the configured LLM provider.

        Returns:
            API key for the current LLM provider.

        Raises:
            ValueError: If no API key is configured for the provider.
        """
        provider = self.llm.provider
        key_map = {
            LLMProvider.OPENROUTER: self.openrouter_api_key,
            LLMProvider.LANGCHAIN: self.openrouter_api_key,  # LangChain uses OpenRouter
            LLMProvider.ANTHROPIC: self.anthropic_api_key,
        }
        api_key = key_map.get(provider, "")
        if not api_key:
            env_name = "OPENROUTER" if provider == LLMProvider.LANGCHAIN else provider.value.upper()
            raise ValueError(
                f"No API key configured for provider '{provider.value}'. "
                f"Set the {env_name}_API_KEY environment variable."
            )
        return api_key

    @classmethod
    def from_yaml(cls, config_path: Path | str | None = None) -> "Settings":
        """
        Load settings from a YAML configuration file.

        Args:
            config_path: Path to config.yaml file. If None, looks for config.yaml
                        in the current directory and project root.

        Returns:
            Settings instance with values from YAML merged with env vars.
        """
        config_data: dict = {}

        if config_path is None:
            search_paths = [
                Path.cwd() / "config.yaml",
                Path(__file__).parent.parent.parent / "config.yaml",
            ]
            for path in search_paths:
                if path.exists():
                    config_path = path
                    break

        if config_path is not None:
            config_path = Path(config_path)
            if config_path.exists():
                with open(config_path, encoding="utf-8") as f:
                    config_data = yaml.safe_load(f) or {}

        return cls(**config_data)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings.from_yaml()
