"""Exception hierarchy for the vault vector index.

Fatal kinds (engine abort, provider configuration, batch-wide embedding
failure) abort an indexing run. Per-file and per-chunk failures are collected
into the run result instead of being raised.
"""

from __future__ import annotations


class VaultIndexError(Exception):
    """Base class for all vaultindex errors."""


# ---------------------------------------------------------------------------
# Engine lifecycle
# ---------------------------------------------------------------------------


class EngineAbortedError(VaultIndexError):
    """The embedded engine aborted during initialisation.

    Signals an outdated host runtime (SQLite build without extension loading,
    missing sqlite-vec binary). Retrying will not help; the host must be updated.
    """

    def __init__(self, detail: str = "") -> None:
        message = (
            "The vector database engine could not be initialised. "
            "Your Python/SQLite runtime is outdated or lacks extension support; "
            "please update it."
        )
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class DatabaseNotInitializedError(VaultIndexError):
    """The database manager has no live connection."""

    def __init__(self) -> None:
        super().__init__("Database is not initialized")


# ---------------------------------------------------------------------------
# Embedding provider
# ---------------------------------------------------------------------------


class EmbeddingProviderConfigError(VaultIndexError):
    """Base for provider misconfiguration, fixable in settings and never retried."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(message)


class ApiKeyNotSetError(EmbeddingProviderConfigError):
    def __init__(self, provider: str, env_var: str) -> None:
        self.env_var = env_var
        super().__init__(
            provider,
            f"API key not found for provider '{provider}'. "
            f"Set the {env_var} environment variable.",
        )


class ApiKeyInvalidError(EmbeddingProviderConfigError):
    def __init__(self, provider: str, detail: str = "") -> None:
        message = f"The API key for provider '{provider}' was rejected."
        if detail:
            message = f"{message} {detail}"
        super().__init__(provider, message)


class BaseUrlNotSetError(EmbeddingProviderConfigError):
    def __init__(self, provider: str) -> None:
        super().__init__(
            provider,
            f"Provider '{provider}' requires a base URL. "
            "Set embedding.api_base in vaultindex.yaml or VAULTINDEX_API_BASE.",
        )


class RateLimitExceededError(VaultIndexError):
    """The provider reported a rate limit (HTTP 429). Retryable."""

    status_code = 429

    def __init__(self, provider: str, detail: str = "") -> None:
        self.provider = provider
        message = f"Rate limit exceeded for provider '{provider}'."
        if detail:
            message = f"{message} {detail}"
        super().__init__(message)


class InvalidEmbeddingResponseError(VaultIndexError):
    """The embedding response matched none of the known shapes."""


# ---------------------------------------------------------------------------
# Indexing run
# ---------------------------------------------------------------------------


class IndexingError(VaultIndexError):
    """An indexing run aborted.

    Attributes:
        failed_chunks: Chunk failures collected before the abort (may be empty).
    """

    def __init__(self, message: str, failed_chunks: list | None = None) -> None:
        self.failed_chunks = list(failed_chunks or [])
        super().__init__(message)


class BatchEmbeddingError(IndexingError):
    """Every chunk in an embedding batch failed."""


class IndexingCancelledError(IndexingError):
    """The run was cancelled between batches via its cancel event."""
