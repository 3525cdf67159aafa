"""Tests for vaultindex watch (watchfiles.awatch is patched)."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from typer.testing import CliRunner
from watchfiles import Change

from conftest import FakeEmbeddingClient
from vaultindex.cli.main import app
from vaultindex.cli.watch import _vault_relative

runner = CliRunner()


@pytest.fixture
def vault_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr("vaultindex.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    root = (tmp_path / "vault").resolve()
    root.mkdir()
    (root / "a.md").write_text("alpha", encoding="utf-8")
    return root


def _fake_awatch(*batches):
    async def _awatch(*paths, **kwargs):
        for batch in batches:
            yield batch

    return _awatch


def test_change_triggers_update_and_records_time(vault_dir: Path) -> None:
    client = FakeEmbeddingClient()
    events = {(Change.modified, str(vault_dir / "a.md"))}
    with patch("vaultindex.cli.watch.build_client", return_value=client), \
         patch("vaultindex.cli.watch.awatch", _fake_awatch(events)):
        result = runner.invoke(app, ["watch", "--vault", str(vault_dir), "--debounce", "30"])

    assert result.exit_code == 0, result.output
    assert "Auto-update: 1 new" in result.output
    assert client.calls == ["alpha"]
    saved = yaml.safe_load((vault_dir / "vaultindex.yaml").read_text(encoding="utf-8"))
    assert saved["auto_update"]["last_auto_update_at"] > 0


def test_ignored_events_do_not_trigger(vault_dir: Path) -> None:
    client = FakeEmbeddingClient()
    events = {
        (Change.modified, str(vault_dir / ".vaultindex" / "vectors.db.gz")),
        (Change.added, str(vault_dir / "image.png")),
    }
    with patch("vaultindex.cli.watch.build_client", return_value=client), \
         patch("vaultindex.cli.watch.awatch", _fake_awatch(events)):
        result = runner.invoke(app, ["watch", "--vault", str(vault_dir)])

    assert result.exit_code == 0, result.output
    assert client.calls == []
    assert not (vault_dir / "vaultindex.yaml").exists()


def test_interval_gate_respected(vault_dir: Path) -> None:
    import time

    (vault_dir / "vaultindex.yaml").write_text(
        yaml.safe_dump({"auto_update": {"last_auto_update_at": time.time()}}), encoding="utf-8"
    )
    client = FakeEmbeddingClient()
    events = {(Change.modified, str(vault_dir / "a.md"))}
    with patch("vaultindex.cli.watch.build_client", return_value=client), \
         patch("vaultindex.cli.watch.awatch", _fake_awatch(events)):
        result = runner.invoke(app, ["watch", "--vault", str(vault_dir), "--interval-hours", "1"])

    assert result.exit_code == 0, result.output
    assert client.calls == []


def test_vault_relative(tmp_path: Path) -> None:
    root = tmp_path
    assert _vault_relative(root, root / "notes" / "a.md") == "notes/a.md"
    assert _vault_relative(root, root / ".obsidian" / "x.md") is None
    assert _vault_relative(root, root / "notes" / "a.txt") is None
    assert _vault_relative(root, tmp_path.parent / "outside.md") is None
