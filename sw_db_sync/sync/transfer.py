"""
Download of the dump file and cleanup of the remote copy
"""

import subprocess

from sw_db_sync.errors import TransferError
from sw_db_sync.models import DumpArtifact
from sw_db_sync.utils.filesystem import ensure_dir_exists, file_size, format_file_size
from sw_db_sync.utils.process import LONG_TIMEOUT, Pipeline, SHORT_TIMEOUT
from sw_db_sync.utils.ssh import RemoteShell, run_rsync


def cleanup_remote_file(shell: RemoteShell, *remote_paths: str) -> bool:
    """
    Deletes files on the remote server, best effort

    Failures are reported and otherwise ignored; there is no retry.

    Args:
        shell: Remote shell of the environment
        remote_paths: Files to delete

    Returns:
        bool: True if the remote command succeeded
    """
    try:
        result = shell.execute(Pipeline.single(["rm", "-f"] + list(remote_paths)), timeout=SHORT_TIMEOUT)
    except subprocess.TimeoutExpired:
        print(f"⚠️ Timed out removing remote file(s): {', '.join(remote_paths)}")
        return False

    if not result.ok:
        print(f"⚠️ Could not remove remote file(s) {', '.join(remote_paths)}: {result.stderr.strip()}")
        return False
    return True


def download_dump(shell: RemoteShell, artifact: DumpArtifact, timeout: float = LONG_TIMEOUT) -> int:
    """
    Copies the remote dump file to the local path, then removes the remote copy

    The remote file is removed whatever the outcome of the download.

    Args:
        shell: Remote shell of the environment to sync from
        artifact: Dump file locations
        timeout: Seconds before the download is abandoned

    Returns:
        int: Size of the downloaded file in bytes

    Raises:
        TransferError: If rsync fails, times out, or leaves a missing or empty file
    """
    print("⬇️ Downloading dump file via rsync...")
    ensure_dir_exists(artifact.local_path.parent)

    source = f"{shell.target.destination}:{artifact.remote_path}"
    try:
        try:
            result = run_rsync(
                source=source,
                dest=artifact.local_path,
                target=shell.target,
                runner=shell.runner,
                timeout=timeout,
                verbose=shell.verbose,
            )
        except subprocess.TimeoutExpired:
            raise TransferError(f"Download did not finish within {int(timeout)} seconds")

        if not result.ok:
            raise TransferError(f"Failed to download dump file!\n{result.stderr}")
    finally:
        print("🧹 Cleaning up remote dump file...")
        cleanup_remote_file(shell, artifact.remote_path)

    # rsync can report success and still leave nothing usable behind
    size = file_size(artifact.local_path)
    if size == 0:
        raise TransferError(f"Downloaded file is missing or empty: {artifact.local_path}")

    print(f"✅ Download completed ({format_file_size(size)})")
    return size
