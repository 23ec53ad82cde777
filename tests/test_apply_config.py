"""
Tests for applying the override file without a sync.
"""

import json
from pathlib import Path

from conftest import FakeRunner
from sw_db_sync.commands.apply_config import apply_config_only, resolve_config_path


def test_resolve_config_path(tmp_path):
    assert resolve_config_path(tmp_path) == tmp_path / "sw-db-sync-config.json"
    assert resolve_config_path(tmp_path, "custom.json") == tmp_path / "custom.json"
    assert resolve_config_path(tmp_path, "/etc/shop/overrides.json") == Path("/etc/shop/overrides.json")


def test_missing_file_fails(settings, sqlite_db, capsys):
    assert apply_config_only(settings, sqlite_db, "nope.json", runner=FakeRunner()) is False
    assert "Configuration file not found: nope.json" in capsys.readouterr().out


def test_applies_file_then_commands_then_cache(settings, sqlite_db, id_factory, clock):
    sqlite_db.add_domain("https://www.shop.com", bytes.fromhex("0189abcd"))
    (settings.project_dir / "custom.json").write_text(json.dumps({
        "sales_channel_domains": {"0189abcd": "shop.ddev.site"},
        "post_sync_commands": ["plugin:refresh"],
    }))
    runner = FakeRunner()

    result = apply_config_only(
        settings, sqlite_db, "custom.json", runner=runner, id_factory=id_factory, clock=clock
    )

    assert result is True
    assert sqlite_db.urls() == ["https://shop.ddev.site"]
    assert [call.argv[-1] for call in runner.calls] == ["plugin:refresh", "cache:clear:all"]


def test_skip_flags(settings, sqlite_db):
    settings.override_file.write_text(json.dumps({"post_sync_commands": ["plugin:refresh"]}))
    runner = FakeRunner()

    assert apply_config_only(settings, sqlite_db, skip_cache_clear=True, skip_post_commands=True, runner=runner)
    assert runner.calls == []


def test_malformed_file_fails(settings, sqlite_db):
    settings.override_file.write_text("{ broken")
    assert apply_config_only(settings, sqlite_db, runner=FakeRunner()) is False
