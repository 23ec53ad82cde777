"""
Tests for the command-line interface wiring.
"""

from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from sw_db_sync import __version__
from sw_db_sync.cli import cli


@pytest.fixture
def cli_runner():
    return CliRunner()


def invoke(cli_runner, tmp_path, args):
    return cli_runner.invoke(cli, args + ["--project-dir", str(tmp_path)], env={"SW_DB_SYNC_LOCAL_DOMAIN": "x.test"})


def test_version(cli_runner):
    result = cli_runner.invoke(cli, ["--version"])
    assert __version__ in result.output


@patch("sw_db_sync.cli.DatabaseSynchronizer")
def test_sync_maps_flags_to_options(synchronizer_class, cli_runner, tmp_path):
    synchronizer_class.return_value.sync.return_value = True

    result = invoke(cli_runner, tmp_path, ["sync", "Production", "-k", "--no-gzip", "--no-ignore", "-y"])

    assert result.exit_code == 0, result.output
    environment, options = synchronizer_class.return_value.sync.call_args[0]
    assert environment == "production"
    assert options.keep_dump and options.assume_yes
    assert not options.compress
    assert not options.ignore_tables
    assert not options.skip_import


@patch("sw_db_sync.cli.DatabaseSynchronizer")
def test_failed_sync_exits_with_1(synchronizer_class, cli_runner, tmp_path):
    synchronizer_class.return_value.sync.return_value = False
    result = invoke(cli_runner, tmp_path, ["sync", "staging", "--skip-import"])
    assert result.exit_code == 1


def test_sync_rejects_unknown_environment(cli_runner, tmp_path):
    result = invoke(cli_runner, tmp_path, ["sync", "development"])
    assert result.exit_code == 2


def test_sync_requires_environment(cli_runner, tmp_path):
    result = invoke(cli_runner, tmp_path, ["sync"])
    assert result.exit_code == 2


@patch("sw_db_sync.cli.apply_config_file", return_value=True)
def test_apply_config_only_flag(apply_config, cli_runner, tmp_path):
    result = invoke(cli_runner, tmp_path, ["sync", "--apply-config-only=custom.json"])

    assert result.exit_code == 0, result.output
    assert apply_config.call_args.kwargs["config_file"] == "custom.json"


@patch("sw_db_sync.cli.apply_config_file", return_value=True)
def test_apply_config_only_without_path(apply_config, cli_runner, tmp_path):
    result = cli_runner.invoke(cli, ["sync", "--project-dir", str(tmp_path), "--apply-config-only"])

    assert result.exit_code == 0, result.output
    assert apply_config.call_args.kwargs["config_file"] is None


@patch("sw_db_sync.cli.apply_config_file", return_value=False)
def test_apply_config_command(apply_config, cli_runner, tmp_path):
    result = invoke(cli_runner, tmp_path, ["apply-config", "other.json", "--skip-cache-clear"])

    assert result.exit_code == 1
    kwargs = apply_config.call_args.kwargs
    assert kwargs["config_file"] == "other.json"
    assert kwargs["skip_cache_clear"] is True
    assert kwargs["skip_post_commands"] is False


def test_main_reports_unexpected_errors(capsys):
    from sw_db_sync import cli as cli_module

    with patch.object(cli_module, "cli", MagicMock(side_effect=RuntimeError("boom"))):
        with pytest.raises(SystemExit) as excinfo:
            cli_module.main()

    assert excinfo.value.code == 1
    assert "boom" in capsys.readouterr().err
