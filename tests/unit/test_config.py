"""Tests for the vaultindex config loader."""

from __future__ import annotations

import stat
import warnings
from pathlib import Path

import pytest
import yaml

from vaultindex.config import (
    _API_KEY_RE,
    ConfigError,
    VaultIndexConfig,
    ensure_global_config,
    load_config,
    record_auto_update,
)


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("VAULTINDEX_EMBEDDING_MODEL", "VAULTINDEX_EMBEDDING_DIMENSION", "VAULTINDEX_API_BASE"):
        monkeypatch.delenv(var, raising=False)


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data), encoding="utf-8")


def _load(tmp_path: Path, global_cfg: Path | None = None) -> VaultIndexConfig:
    return load_config(tmp_path, global_config_path=global_cfg or tmp_path / "missing.yaml")


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


def test_load_config_defaults_no_files(tmp_path: Path) -> None:
    """No config files → all hardcoded defaults."""
    cfg = _load(tmp_path)

    assert cfg.embedding.model == "openai/text-embedding-3-small"
    assert cfg.embedding.dimension == 1536
    assert cfg.embedding.api_base is None
    assert cfg.indexing.chunk_size == 1000
    assert cfg.indexing.chunk_overlap == 0.10
    assert cfg.indexing.batch_size == 100
    assert cfg.indexing.include_patterns == []
    assert cfg.retry.max_attempts == 8
    assert cfg.retry.starting_delay == 2.0
    assert cfg.retry.max_delay == 60.0
    assert cfg.search.limit == 10
    assert cfg.auto_update.enabled is False
    assert cfg.auto_update.interval_hours == 24


def test_snapshot_path_relative_to_vault(tmp_path: Path) -> None:
    cfg = _load(tmp_path)
    assert cfg.snapshot_path(tmp_path) == tmp_path / ".vaultindex" / "vectors.db.gz"


def test_snapshot_path_absolute_dir(tmp_path: Path) -> None:
    cfg = VaultIndexConfig()
    cfg.storage.dir = str(tmp_path / "elsewhere")
    assert cfg.snapshot_path(Path("/vault")) == tmp_path / "elsewhere" / "vectors.db.gz"


# ---------------------------------------------------------------------------
# Layering
# ---------------------------------------------------------------------------


def test_global_overrides_defaults(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"model": "cohere/embed-english-v3.0", "dimension": 1024}})
    cfg = _load(tmp_path, global_cfg)
    assert cfg.embedding.model == "cohere/embed-english-v3.0"
    assert cfg.embedding.dimension == 1024
    assert cfg.indexing.chunk_size == 1000


def test_global_empty_file(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text("", encoding="utf-8")
    assert _load(tmp_path, global_cfg).embedding.dimension == 1536


def test_vault_config_overrides_global_partially(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"model": "cohere/embed-english-v3.0", "dimension": 1024}})
    _write_yaml(tmp_path / "vaultindex.yaml", {"embedding": {"dimension": 512}})
    cfg = _load(tmp_path, global_cfg)
    assert cfg.embedding.model == "cohere/embed-english-v3.0"
    assert cfg.embedding.dimension == 512


def test_indexing_section(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "vaultindex.yaml",
        {
            "indexing": {
                "chunk_size": 500,
                "chunk_overlap": 0.2,
                "batch_size": 10,
                "include_patterns": ["notes/"],
                "exclude_patterns": "templates/",
            }
        },
    )
    cfg = _load(tmp_path)
    assert cfg.indexing.chunk_size == 500
    assert cfg.indexing.chunk_overlap == 0.2
    assert cfg.indexing.batch_size == 10
    assert cfg.indexing.include_patterns == ["notes/"]
    assert cfg.indexing.exclude_patterns == ["templates/"]


def test_retry_search_storage_auto_update_sections(tmp_path: Path) -> None:
    _write_yaml(
        tmp_path / "vaultindex.yaml",
        {
            "retry": {"max_attempts": 3, "starting_delay": 0.5},
            "search": {"min_similarity": 0.3, "limit": 5},
            "storage": {"dir": "idx", "snapshot": "v.gz"},
            "auto_update": {"enabled": True, "interval_hours": 2, "last_auto_update_at": 99},
        },
    )
    cfg = _load(tmp_path)
    assert (cfg.retry.max_attempts, cfg.retry.starting_delay, cfg.retry.time_multiple) == (3, 0.5, 2.0)
    assert (cfg.search.min_similarity, cfg.search.limit) == (0.3, 5)
    assert cfg.snapshot_path(tmp_path) == tmp_path / "idx" / "v.gz"
    assert cfg.auto_update.enabled is True
    assert cfg.auto_update.interval_hours == 2.0
    assert cfg.auto_update.last_auto_update_at == 99.0


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "section, values, match",
    [
        ("embedding", {"dimension": 0}, "embedding.dimension"),
        ("indexing", {"chunk_size": 0}, "indexing.chunk_size"),
        ("indexing", {"chunk_overlap": 1.5}, "indexing.chunk_overlap"),
        ("indexing", {"batch_size": 0}, "indexing.batch_size"),
        ("retry", {"max_attempts": 0}, "retry.max_attempts"),
        ("indexing", {"chunk_size": "big"}, "Invalid configuration value"),
    ],
)
def test_invalid_values_raise(tmp_path: Path, section: str, values: dict, match: str) -> None:
    _write_yaml(tmp_path / "vaultindex.yaml", {section: values})
    with pytest.raises(ConfigError, match=match):
        _load(tmp_path)


@pytest.mark.parametrize(
    "bad_key",
    ["api_key", "apikey", "OPENAI_API_KEY", "secret", "password", "token", "api-key"],
)
def test_global_config_rejects_api_key_fields(tmp_path: Path, bad_key: str) -> None:
    global_cfg = tmp_path / "config.yaml"
    global_cfg.write_text(f"{bad_key}: sk-abc123\n", encoding="utf-8")
    with pytest.raises(ConfigError, match="forbidden key"):
        _load(tmp_path, global_cfg)


def test_global_config_rejects_nested_api_key(tmp_path: Path) -> None:
    global_cfg = tmp_path / "config.yaml"
    _write_yaml(global_cfg, {"embedding": {"api_key": "sk-secret"}})
    with pytest.raises(ConfigError, match="embedding.api_key"):
        _load(tmp_path, global_cfg)


def test_legitimate_keys_not_flagged() -> None:
    for key in ("chunk_size", "max_tokens", "api_base", "batch_size"):
        assert not _API_KEY_RE.search(key)


def test_unknown_top_level_key_warns(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "vaultindex.yaml", {"unknown_section": {"foo": "bar"}})
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        cfg = _load(tmp_path)
    assert any("unknown_section" in str(w.message) for w in caught)
    assert cfg.embedding.dimension == 1536


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------


def test_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_yaml(tmp_path / "vaultindex.yaml", {"embedding": {"model": "openai/a", "dimension": 3}})
    monkeypatch.setenv("VAULTINDEX_EMBEDDING_MODEL", "hosted_vllm/bge-m3")
    monkeypatch.setenv("VAULTINDEX_EMBEDDING_DIMENSION", "1024")
    monkeypatch.setenv("VAULTINDEX_API_BASE", "http://gpu:8000/v1")
    cfg = _load(tmp_path)
    assert cfg.embedding.model == "hosted_vllm/bge-m3"
    assert cfg.embedding.dimension == 1024
    assert cfg.embedding.api_base == "http://gpu:8000/v1"


def test_known_model_without_dimension_uses_model_dimension(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "vaultindex.yaml", {"embedding": {"model": "ollama/nomic-embed-text"}})
    assert _load(tmp_path).embedding.dimension == 768


def test_unknown_model_without_dimension_keeps_default(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "vaultindex.yaml", {"embedding": {"model": "hosted_vllm/bge-m3"}})
    assert _load(tmp_path).embedding.dimension == 1536


def test_env_model_switch_uses_model_dimension(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_yaml(tmp_path / "vaultindex.yaml", {"embedding": {"model": "openai/a", "dimension": 3}})
    monkeypatch.setenv("VAULTINDEX_EMBEDDING_MODEL", "cohere/embed-english-v3.0")
    assert _load(tmp_path).embedding.dimension == 1024


def test_env_dimension_must_be_integer(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("VAULTINDEX_EMBEDDING_DIMENSION", "wide")
    with pytest.raises(ConfigError, match="must be an integer"):
        _load(tmp_path)


# ---------------------------------------------------------------------------
# Writers
# ---------------------------------------------------------------------------


def test_ensure_global_config_creates_file(tmp_path: Path) -> None:
    target = tmp_path / ".vaultindex" / "config.yaml"
    assert ensure_global_config(global_config_path=target) == target
    content = target.read_text(encoding="utf-8")
    assert "embedding" in content
    assert stat.S_IMODE(target.stat().st_mode) == 0o600
    # The generated file must itself pass the global-config checks.
    assert _load(tmp_path, target).embedding.model == "openai/text-embedding-3-small"


def test_ensure_global_config_keeps_existing(tmp_path: Path) -> None:
    target = tmp_path / "config.yaml"
    target.write_text("embedding:\n  model: mistral/mistral-embed\n", encoding="utf-8")
    ensure_global_config(global_config_path=target)
    assert "mistral" in target.read_text(encoding="utf-8")


def test_record_auto_update_preserves_other_keys(tmp_path: Path) -> None:
    _write_yaml(tmp_path / "vaultindex.yaml", {"embedding": {"dimension": 8}, "auto_update": {"enabled": True}})
    record_auto_update(tmp_path, 1234.5)
    cfg = _load(tmp_path)
    assert cfg.embedding.dimension == 8
    assert cfg.auto_update.enabled is True
    assert cfg.auto_update.last_auto_update_at == 1234.5


def test_record_auto_update_creates_file(tmp_path: Path) -> None:
    record_auto_update(tmp_path, 1.0)
    assert _load(tmp_path).auto_update.last_auto_update_at == 1.0
