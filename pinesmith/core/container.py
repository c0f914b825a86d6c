"""
Dependency Injection Container for the Pine Script generation service.

Provides lazy initialization of shared resources using lru_cache.
Ensures singletons are created once during startup and shared across
FastAPI dependencies.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

import httpx

from pinesmith.core.config import Settings, get_settings

if TYPE_CHECKING:
    from pinesmith.providers.llm.base import LLMProvider
    from pinesmith.services.script_generator import PineScriptGenerator
    from pinesmith.services.session_store import SessionStore


class Container:
    """
    Dependency Injection Container.

    Manages lifecycle of shared resources:
    - Settings (configuration)
    - HTTP Client (httpx.AsyncClient, shared by the LLM SDK clients)
    - LLM Provider (completion service)
    - Script generator (pipeline service)
    - Session store (refinement sessions)

    Usage:
        container = get_container()
        generator = container.get_script_generator()
        sessions = container.get_session_store()
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize the container.

        Args:
            settings: Optional settings override. If None, loads from config.
        """
        self._settings = settings
        self._http_client: httpx.AsyncClient | None = None
        self._llm_provider: "LLMProvider | None" = None
        self._script_generator: "PineScriptGenerator | None" = None
        self._session_store: "SessionStore | None" = None

    @property
    def settings(self) -> Settings:
        """
        Get the application settings.

        Returns:
            Cached Settings instance.
        """
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def get_http_client(self) -> httpx.AsyncClient:
        """
        Get or create the shared HTTP client.

        The timeout follows the configured per-call request timeout.
        Call close_http_client() during shutdown to properly close connections.

        Returns:
            Shared httpx.AsyncClient instance.
        """
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.llm.request_timeout_seconds),
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            )
        return self._http_client

    async def close_http_client(self) -> None:
        """Close the HTTP client and release its connections."""
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    def get_llm_provider(self) -> "LLMProvider":
        """
        Get or create the LLM provider.

        The provider is lazily initialized on first access using the factory,
        so a missing API key only fails the first request that needs it.

        Returns:
            LLMProvider instance (singleton per container)

        Raises:
            ValueError: If the provider is unsupported or has no API key
            LLMProviderError: If provider creation fails
        """
        if self._llm_provider is None:
            from pinesmith.providers.llm.factory import LLMProviderFactory

            self._llm_provider = LLMProviderFactory.create(
                settings=self.settings,
                http_client=self.get_http_client(),
            )
        return self._llm_provider

    async def close_llm_provider(self) -> None:
        """Close and cleanup the LLM provider."""
        if self._llm_provider is not None:
            await self._llm_provider.close()
            self._llm_provider = None

    def get_script_generator(self) -> "PineScriptGenerator":
        """
        Get or create the script generator.

        Returns:
            PineScriptGenerator instance (singleton per container)
        """
        if self._script_generator is None:
            from pinesmith.services.script_generator import PineScriptGenerator

            self._script_generator = PineScriptGenerator(
                llm_provider=self.get_llm_provider(),
                pipeline_config=self.settings.pipeline,
                default_model=self.settings.llm.model,
            )
        return self._script_generator

    def get_session_store(self) -> "SessionStore":
        """
        Get or create the session store.

        Returns:
            SessionStore instance (singleton per container)
        """
        if self._session_store is None:
            from pinesmith.services.session_store import SessionStore

            self._session_store = SessionStore(
                max_sessions=self.settings.pipeline.max_sessions,
            )
        return self._session_store

    async def startup(self) -> None:
        """
        Initialize resources on application startup.

        Called by FastAPI lifespan context manager.
        """
        # Pre-initialize settings to catch config errors early
        _ = self.settings
        _ = self.get_http_client()
        _ = self.get_session_store()
        # LLM provider is created on first use so the app starts without API keys

    async def shutdown(self) -> None:
        """
        Clean up resources on application shutdown.

        Called by FastAPI lifespan context manager.
        """
        if self._session_store is not None:
            self._session_store.clear()
        self._script_generator = None
        await self.close_llm_provider()
        await self.close_http_client()


# Global container instance using lru_cache for singleton behavior
@lru_cache
def get_container() -> Container:
    """
    Get the cached container instance.

    Call get_container.cache_clear() to reset (useful for testing).
    """
    return Container()


def clear_container_cache() -> None:
    """
    Clear the container cache.

    Useful for testing to reset the container state.
    Also clears the settings cache.
    """
    get_container.cache_clear()
    get_settings.cache_clear()


# Convenience functions for FastAPI dependencies
def get_settings_dep() -> Settings:
    """
    FastAPI dependency for getting settings.

    Usage:
        @app.get("/")
        async def root(settings: Settings = Depends(get_settings_dep)):
            ...
    """
    return get_container().settings


def get_script_generator_dep() -> "PineScriptGenerator":
    """
    FastAPI dependency for getting the script generator.

    Usage:
        @router.post("/generate")
        async def generate(
            body: GenerateScriptRequest,
            generator: PineScriptGenerator = Depends(get_script_generator_dep),
        ):
            ...
    """
    return get_container().get_script_generator()


def get_session_store_dep() -> "SessionStore":
    """FastAPI dependency for getting the refinement session store."""
    return get_container().get_session_store()
