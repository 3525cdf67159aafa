"""vaultindex configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site — not in this module)
  2. Environment variables  (VAULTINDEX_EMBEDDING_MODEL, VAULTINDEX_EMBEDDING_DIMENSION,
                             VAULTINDEX_API_BASE)
  3. Per-vault vaultindex.yaml  (at the vault root)
  4. Global ~/.vaultindex/config.yaml  (defaults only — no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load() — never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from vaultindex.embedding.client import default_dimension

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".vaultindex"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "vaultindex.yaml"

# Key names that suggest a credential; forbidden in global config.
# Does NOT match legitimate keys like max_tokens or chunk_size.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "indexing", "retry", "search", "storage", "auto_update"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding model configuration (vaultindex.yaml: embedding:)."""

    model: str = "openai/text-embedding-3-small"
    dimension: int = 1536
    api_base: str | None = None


@dataclass
class IndexingCfg:
    """Chunking and file selection (vaultindex.yaml: indexing:).

    Attributes:
        chunk_size: Target chunk length in characters.
        chunk_overlap: Fraction of chunk_size shared by consecutive chunks.
        batch_size: Chunks embedded concurrently per batch.
        include_patterns: Gitignore-style globs; empty selects every file.
        exclude_patterns: Gitignore-style globs; always win over includes.
    """

    chunk_size: int = 1000
    chunk_overlap: float = 0.10
    batch_size: int = 100
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)


@dataclass
class RetryCfg:
    """Embedding request backoff (vaultindex.yaml: retry:). Delays in seconds."""

    max_attempts: int = 8
    starting_delay: float = 2.0
    time_multiple: float = 2.0
    max_delay: float = 60.0


@dataclass
class SearchCfg:
    min_similarity: float = 0.0
    limit: int = 10


@dataclass
class StorageCfg:
    """Snapshot location, relative to the vault root unless absolute."""

    dir: str = ".vaultindex"
    snapshot: str = "vectors.db.gz"


@dataclass
class AutoUpdateCfg:
    enabled: bool = False
    interval_hours: float = 24.0
    last_auto_update_at: float | None = None


@dataclass
class VaultIndexConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    indexing: IndexingCfg = field(default_factory=IndexingCfg)
    retry: RetryCfg = field(default_factory=RetryCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    storage: StorageCfg = field(default_factory=StorageCfg)
    auto_update: AutoUpdateCfg = field(default_factory=AutoUpdateCfg)

    def snapshot_path(self, vault_dir: Path) -> Path:
        base = Path(self.storage.dir)
        if not base.is_absolute():
            base = vault_dir / base
        return base / self.storage.snapshot


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: VaultIndexConfig) -> None:
    if cfg.embedding.dimension < 1:
        raise ConfigError(f"embedding.dimension must be >= 1, got {cfg.embedding.dimension}")
    if cfg.indexing.chunk_size < 1:
        raise ConfigError(f"indexing.chunk_size must be >= 1, got {cfg.indexing.chunk_size}")
    if not 0.0 <= cfg.indexing.chunk_overlap < 1.0:
        raise ConfigError(
            f"indexing.chunk_overlap must be in [0.0, 1.0), got {cfg.indexing.chunk_overlap}"
        )
    if cfg.indexing.batch_size < 1:
        raise ConfigError(f"indexing.batch_size must be >= 1, got {cfg.indexing.batch_size}")
    if cfg.retry.max_attempts < 1:
        raise ConfigError(f"retry.max_attempts must be >= 1, got {cfg.retry.max_attempts}")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _str_list(raw: Any, default: list[str]) -> list[str]:
    if raw is None:
        return list(default)
    if isinstance(raw, str):
        return [raw]
    return [str(p) for p in raw]


def _cfg_from_dict(data: dict[str, Any]) -> VaultIndexConfig:
    """Build a *VaultIndexConfig* from a merged raw YAML dict."""
    cfg = VaultIndexConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        model = str(e.get("model", cfg.embedding.model))
        dimension = e.get("dimension")
        if dimension is None:
            dimension = default_dimension(model) or cfg.embedding.dimension
        cfg.embedding = EmbeddingCfg(
            model=model,
            dimension=int(dimension),
            api_base=e.get("api_base") or cfg.embedding.api_base,
        )

    if "indexing" in data:
        i = data["indexing"] or {}
        cfg.indexing = IndexingCfg(
            chunk_size=int(i.get("chunk_size", cfg.indexing.chunk_size)),
            chunk_overlap=float(i.get("chunk_overlap", cfg.indexing.chunk_overlap)),
            batch_size=int(i.get("batch_size", cfg.indexing.batch_size)),
            include_patterns=_str_list(i.get("include_patterns"), cfg.indexing.include_patterns),
            exclude_patterns=_str_list(i.get("exclude_patterns"), cfg.indexing.exclude_patterns),
        )

    if "retry" in data:
        r = data["retry"] or {}
        cfg.retry = RetryCfg(
            max_attempts=int(r.get("max_attempts", cfg.retry.max_attempts)),
            starting_delay=float(r.get("starting_delay", cfg.retry.starting_delay)),
            time_multiple=float(r.get("time_multiple", cfg.retry.time_multiple)),
            max_delay=float(r.get("max_delay", cfg.retry.max_delay)),
        )

    if "search" in data:
        s = data["search"] or {}
        cfg.search = SearchCfg(
            min_similarity=float(s.get("min_similarity", cfg.search.min_similarity)),
            limit=int(s.get("limit", cfg.search.limit)),
        )

    if "storage" in data:
        st = data["storage"] or {}
        cfg.storage = StorageCfg(
            dir=str(st.get("dir", cfg.storage.dir)),
            snapshot=str(st.get("snapshot", cfg.storage.snapshot)),
        )

    if "auto_update" in data:
        a = data["auto_update"] or {}
        last = a.get("last_auto_update_at")
        cfg.auto_update = AutoUpdateCfg(
            enabled=bool(a.get("enabled", cfg.auto_update.enabled)),
            interval_hours=float(a.get("interval_hours", cfg.auto_update.interval_hours)),
            last_auto_update_at=float(last) if last is not None else None,
        )

    return cfg


def _apply_env_overrides(cfg: VaultIndexConfig) -> VaultIndexConfig:
    """Apply VAULTINDEX_* environment variable overrides."""
    if (model := os.environ.get("VAULTINDEX_EMBEDDING_MODEL")) and model != cfg.embedding.model:
        cfg.embedding.model = model
        # The configured dimension belonged to the replaced model.
        if known := default_dimension(model):
            cfg.embedding.dimension = known
    if dimension := os.environ.get("VAULTINDEX_EMBEDDING_DIMENSION"):
        try:
            cfg.embedding.dimension = int(dimension)
        except ValueError as exc:
            raise ConfigError(
                f"VAULTINDEX_EMBEDDING_DIMENSION must be an integer, got '{dimension}'"
            ) from exc
    if api_base := os.environ.get("VAULTINDEX_API_BASE"):
        cfg.embedding.api_base = api_base
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    vault_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> VaultIndexConfig:
    """Load and return a merged *VaultIndexConfig*.

    Applies layers in order: global → per-vault → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        vault_dir: Directory to search for *vaultindex.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If global config contains API-key-like fields, or a value
            is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = vault_dir if vault_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc

    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg


def ensure_global_config(
    global_config_path: Path | None = None,
) -> Path:
    """Create ``~/.vaultindex/config.yaml`` with defaults if it does not exist.

    Creates parent directory with mode 0o700 and the config file with
    mode 0o600 (owner-readable only).

    Args:
        global_config_path: Override path (for testing).

    Returns:
        Path to the global config file.
    """
    target = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    target.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    if not target.exists():
        content = (
            "# vaultindex global configuration — model defaults only.\n"
            "# NEVER store API keys here — use environment variables:\n"
            "#   export OPENAI_API_KEY=sk-...\n"
            "\n"
            "embedding:\n"
            "  model: openai/text-embedding-3-small\n"
            "  dimension: 1536\n"
        )
        target.write_text(content, encoding="utf-8")
        target.chmod(0o600)

    return target


def record_auto_update(vault_dir: Path, timestamp: float) -> Path:
    """Persist ``auto_update.last_auto_update_at`` in the vault's vaultindex.yaml.

    Other keys in the file are preserved; the file is created if missing.
    """
    target = vault_dir / _PROJECT_CONFIG_NAME
    data: dict[str, Any] = {}
    if target.exists():
        data = yaml.safe_load(target.read_text(encoding="utf-8")) or {}
    section = data.get("auto_update") or {}
    section["last_auto_update_at"] = timestamp
    data["auto_update"] = section
    target.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return target
