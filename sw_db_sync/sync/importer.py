"""
Import of the dump file into the local database

The dump is streamed into the mysql client wrapped in session statements
that relax foreign key and unique checks for speed. Every line is
decompressed and stripped of DEFINER comments before the client sees it.
There is no rollback: a failed import can leave a partially filled
database behind, and the sync has to be run again.
"""

import gzip
import subprocess
from pathlib import Path
from typing import Iterator, Optional

from tqdm import tqdm

from sw_db_sync.errors import DatabaseImportError
from sw_db_sync.models import DbConfig
from sw_db_sync.sync.definers import strip_definer_comments
from sw_db_sync.utils.filesystem import file_size, format_file_size
from sw_db_sync.utils.process import LONG_TIMEOUT, Pipeline, ProcessRunner

INIT_STATEMENTS = b'SET FOREIGN_KEY_CHECKS=0; SET UNIQUE_CHECKS=0; SET SQL_MODE="NO_AUTO_VALUE_ON_ZERO";\n'
RESTORE_STATEMENTS = b"SET FOREIGN_KEY_CHECKS=1; SET UNIQUE_CHECKS=1;\n"

# Bytes buffered before a write to the client
CHUNK_SIZE = 1024 * 1024


def mysql_client(db: DbConfig) -> Pipeline:
    """
    mysql client invocation for the local database, password in the environment
    """
    argv = [
        "mysql",
        f"--host={db.host}",
        f"--port={db.port}",
        f"--user={db.user}",
        db.name,
    ]
    return Pipeline.single(argv, env={"MYSQL_PWD": db.password})


def iter_import_stream(dump_file: Path, compressed: bool, progress: Optional[tqdm] = None) -> Iterator[bytes]:
    """
    Yields the bytes fed to the mysql client

    Args:
        dump_file: Local dump file
        compressed: True if the file is gzip-compressed
        progress: Progress bar advanced by the bytes read from disk

    Yields:
        bytes: Session setup, filtered dump content, session restore
    """
    yield INIT_STATEMENTS

    with open(dump_file, "rb") as raw:
        source = gzip.GzipFile(fileobj=raw, mode="rb") if compressed else raw
        try:
            buffer = []
            buffered = 0
            position = 0
            for line in source:
                stripped = strip_definer_comments(line)
                buffer.append(stripped)
                buffered += len(stripped)
                if buffered >= CHUNK_SIZE:
                    yield b"".join(buffer)
                    buffer = []
                    buffered = 0
                    if progress is not None:
                        current = raw.tell()
                        progress.update(current - position)
                        position = current
            if buffer:
                yield b"".join(buffer)
            if progress is not None:
                progress.update(raw.tell() - position)
        finally:
            if source is not raw:
                source.close()

    # The dump may not end with a newline
    yield b"\n" + RESTORE_STATEMENTS


def import_dump(
    runner: ProcessRunner,
    db: DbConfig,
    dump_file: Path,
    compressed: bool,
    timeout: float = LONG_TIMEOUT,
) -> None:
    """
    Loads a dump file into the local database

    Args:
        runner: Process runner used to start the mysql client
        db: Local database parameters
        dump_file: Local dump file
        compressed: True if the file is gzip-compressed
        timeout: Seconds before the import is abandoned

    Raises:
        DatabaseImportError: If the file is missing, the client fails or time runs out
    """
    if not db.name:
        raise DatabaseImportError("Local database name is not configured")

    size = file_size(dump_file)
    if size == 0:
        raise DatabaseImportError(f"SQL file not found or empty: {dump_file}")

    print("📥 Importing database into local environment...")
    print(f"   File: {dump_file}")
    print(f"   Size: {format_file_size(size)}")
    print("   Stripping DEFINER statements...")

    # tqdm disables itself when stderr is not a terminal
    with tqdm(total=size, unit="B", unit_scale=True, desc="Importing", disable=None) as progress:
        try:
            result = runner.run(
                mysql_client(db),
                timeout=timeout,
                input_chunks=iter_import_stream(dump_file, compressed, progress),
            )
        except subprocess.TimeoutExpired:
            raise DatabaseImportError(f"Import did not finish within {int(timeout)} seconds")
        except (OSError, EOFError) as e:
            # Corrupt or truncated gzip data
            raise DatabaseImportError(f"Unable to read dump file {dump_file}: {e}") from e

    if not result.ok:
        raise DatabaseImportError(f"Database import failed!\n{result.stderr}")

    print("✅ Import completed successfully")
