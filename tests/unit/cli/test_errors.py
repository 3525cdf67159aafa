"""Tests for vaultindex rich error messages."""

from __future__ import annotations

import pytest

from vaultindex.cli.errors import (
    err_api_key_invalid,
    err_api_key_not_set,
    err_base_url_not_set,
    err_batch_failed,
    err_config,
    err_engine_aborted,
    err_indexing_cancelled,
    err_indexing_failed,
    err_no_index,
    err_vault_not_found,
    render_error,
)
from vaultindex.config import ConfigError
from vaultindex.exceptions import (
    ApiKeyInvalidError,
    ApiKeyNotSetError,
    BaseUrlNotSetError,
    BatchEmbeddingError,
    EngineAbortedError,
    IndexingCancelledError,
    IndexingError,
)


def _has_action(msg: str) -> bool:
    """Every error must contain an actionable instruction."""
    lower = msg.lower()
    return any(
        kw in lower
        for kw in ["run:", "set:", "export ", "vaultindex ", "update", "check", "pass ", "--verbose"]
    )


@pytest.mark.parametrize(
    "msg",
    [
        err_api_key_not_set("openai", "OPENAI_API_KEY"),
        err_api_key_invalid("openai"),
        err_base_url_not_set("hosted_vllm"),
        err_engine_aborted(),
        err_batch_failed(3),
        err_indexing_failed("boom"),
        err_indexing_cancelled(),
        err_no_index(".vaultindex/vectors.db.gz"),
        err_vault_not_found("/nowhere"),
    ],
)
def test_every_message_has_an_action(msg: str) -> None:
    assert _has_action(msg)


def test_api_key_message_names_env_var() -> None:
    assert "export OPENAI_API_KEY=" in err_api_key_not_set("openai", "OPENAI_API_KEY")


def test_base_url_message_names_env_var() -> None:
    assert "VAULTINDEX_API_BASE" in err_base_url_not_set("lm_studio")


def test_no_index_message_names_path() -> None:
    assert ".vaultindex/vectors.db.gz" in err_no_index(".vaultindex/vectors.db.gz")


@pytest.mark.parametrize(
    "exc, needle",
    [
        (ApiKeyNotSetError("openai", "OPENAI_API_KEY"), "OPENAI_API_KEY"),
        (ApiKeyInvalidError("openai"), "rejected"),
        (BaseUrlNotSetError("hosted_vllm"), "base URL"),
        (EngineAbortedError(), "could not be started"),
        (IndexingCancelledError("stop"), "cancelled"),
        (BatchEmbeddingError("all failed", [object(), object()]), "2 failures"),
        (IndexingError("All files failed to process"), "All files failed"),
        (ConfigError("indexing.chunk_size must be >= 1"), "Invalid configuration"),
        (RuntimeError("odd"), "odd"),
    ],
)
def test_render_error_dispatch(exc: Exception, needle: str) -> None:
    assert needle in render_error(exc)


def test_config_message_includes_detail() -> None:
    assert "chunk_size" in err_config("indexing.chunk_size must be >= 1")
