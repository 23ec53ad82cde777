"""
Tests for settings loading and environment targets.
"""

import pytest

from sw_db_sync.config import SyncSettings, load_settings, parse_domain_mappings
from sw_db_sync.errors import ConfigError


def test_process_environment_wins_over_env_files(tmp_path):
    (tmp_path / ".env").write_text("SW_DB_SYNC_LOCAL_DOMAIN=from-env.test\nDATABASE_URL=mysql://a:b@localhost/shop\n")
    (tmp_path / ".env.local").write_text("SW_DB_SYNC_LOCAL_DOMAIN=from-local.test\nSW_DB_SYNC_CLEAR_CACHE=false\n")

    settings = load_settings(tmp_path, environ={})
    assert settings.local_domain == "from-local.test"
    assert settings.clear_cache is False
    assert settings.local_db_config().name == "shop"

    settings = load_settings(tmp_path, environ={"SW_DB_SYNC_LOCAL_DOMAIN": "from-process.test"})
    assert settings.local_domain == "from-process.test"


def test_defaults(tmp_path):
    settings = load_settings(tmp_path, environ={})
    assert settings.clear_cache is True
    assert settings.console_command == "php bin/console"
    assert settings.domain_mappings == {}
    assert settings.override_file == tmp_path.resolve() / "sw-db-sync-config.json"


def test_parse_domain_mappings_skips_malformed_pairs():
    assert parse_domain_mappings("a.com:a.test, broken ,b.com:b.test,:x,y:") == {
        "a.com": "a.test",
        "b.com": "b.test",
    }
    assert list(parse_domain_mappings("z.com:1.test,a.com:2.test")) == ["z.com", "a.com"]


def test_environment_target(settings):
    target = settings.get_environment_target("staging")
    assert target.host == "stage.example.com"
    assert target.port == 2222
    assert target.remote_path("x.sql") == "/var/www/shop/x.sql"


def test_unknown_environment(settings):
    with pytest.raises(ConfigError, match="Invalid environment"):
        settings.get_environment_target("development")


def test_missing_host_names_the_variables(tmp_path):
    settings = SyncSettings(project_dir=tmp_path, values={}, ssh_config_path=None)
    with pytest.raises(ConfigError, match="SW_DB_SYNC_PRODUCTION_HOST"):
        settings.get_environment_target("production")


def test_invalid_port(settings):
    settings.values["SW_DB_SYNC_STAGING_PORT"] = "ssh"
    with pytest.raises(ConfigError, match="Invalid SSH port"):
        settings.get_environment_target("staging")


def test_target_completed_from_ssh_config(tmp_path):
    ssh_config = tmp_path / "ssh_config"
    ssh_config.write_text(
        "Host shop-prod\n  HostName prod.example.com\n  User shopuser\n  Port 2201\n  IdentityFile ~/.ssh/id_prod\n"
    )
    settings = SyncSettings(
        project_dir=tmp_path,
        values={"SW_DB_SYNC_PRODUCTION_HOST": "shop-prod", "SW_DB_SYNC_PRODUCTION_PROJECT_PATH": "/srv/shop"},
        ssh_config_path=str(ssh_config),
    )

    target = settings.get_environment_target("production")

    assert target.host == "prod.example.com"
    assert target.user == "shopuser"
    assert target.port == 2201
    assert target.key_path.endswith(".ssh/id_prod")
