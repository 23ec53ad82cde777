"""
Tests for the dump download and remote cleanup.
"""

import pytest

from conftest import FakeRunner
from sw_db_sync.errors import TransferError
from sw_db_sync.models import DumpArtifact
from sw_db_sync.sync.transfer import cleanup_remote_file, download_dump
from sw_db_sync.utils.process import CommandResult
from sw_db_sync.utils.ssh import RemoteShell


def make_artifact(tmp_path):
    return DumpArtifact("/var/www/shop/sync.sql", tmp_path / "dumps" / "sync.sql", compressed=False)


def test_download_writes_file_and_removes_remote_copy(target, tmp_path):
    dump = make_artifact(tmp_path)

    def handler(call):
        if call.program == "rsync":
            assert call.argv[-2] == "deploy@stage.example.com:/var/www/shop/sync.sql"
            dump.local_path.write_bytes(b"SELECT 1;\n")
        return None

    runner = FakeRunner(handler)
    size = download_dump(RemoteShell(target, runner), dump)

    assert size == 10
    assert runner.remote_scripts() == ["rm -f /var/www/shop/sync.sql"]


def test_failed_download_still_cleans_up(target, tmp_path):
    def handler(call):
        if call.program == "rsync":
            return CommandResult(23, "", "rsync error: some files could not be transferred")
        return None

    runner = FakeRunner(handler)
    with pytest.raises(TransferError, match="some files"):
        download_dump(RemoteShell(target, runner), make_artifact(tmp_path))

    assert runner.remote_scripts() == ["rm -f /var/www/shop/sync.sql"]


def test_empty_download_is_an_error_even_when_rsync_succeeds(target, tmp_path):
    dump = make_artifact(tmp_path)

    def handler(call):
        if call.program == "rsync":
            dump.local_path.write_bytes(b"")
        return None

    with pytest.raises(TransferError, match="missing or empty"):
        download_dump(RemoteShell(target, FakeRunner(handler)), dump)


def test_cleanup_failure_only_warns(target, capsys):
    runner = FakeRunner(lambda call: CommandResult(1, "", "rm: permission denied"))

    assert cleanup_remote_file(RemoteShell(target, runner), "/var/www/shop/a.sql") is False
    assert "permission denied" in capsys.readouterr().out
    assert len(runner.calls) == 1
