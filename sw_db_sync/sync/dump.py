"""
Creation of the database dump on the remote server

The dump is written in two phases into one file: the structure (tables,
triggers, routines) and then the rows, skipping ignored tables in the data
phase only. Both phases, the capability probe and the compression run as a
single remote command.
"""

import subprocess
from typing import List, Optional, Sequence, Union

from sw_db_sync.errors import DumpError
from sw_db_sync.models import DbConfig, DumpArtifact
from sw_db_sync.sync.definers import definer_filter
from sw_db_sync.utils.process import (
    Command,
    LONG_TIMEOUT,
    Pipeline,
    Probe,
    RemoteScript,
    ShellVar,
)
from sw_db_sync.utils.ssh import RemoteShell

COLUMN_STATS_VAR = "COLUMN_STATS"


def column_statistics_probe() -> Probe:
    """
    Disables column statistics when mysqldump knows the flag (MySQL 8
    clients fail against older servers otherwise)
    """
    test = Pipeline([
        Command(["mysqldump", "--help"]),
        Command(["grep", "-q", "--", "--column-statistics"]),
    ])
    return Probe(test, COLUMN_STATS_VAR, "--column-statistics=0")


def base_dump_args(db: DbConfig) -> List[Union[str, ShellVar]]:
    return [
        ShellVar(COLUMN_STATS_VAR),
        "--quick",
        "-C",
        "--hex-blob",
        "--single-transaction",
        f"--host={db.host}",
        f"--port={db.port}",
        f"--user={db.user}",
    ]


def ignore_table_args(db_name: str, ignored_tables: Sequence[str]) -> List[str]:
    return [f"--ignore-table={db_name}.{table}" for table in ignored_tables]


def structure_dump(db: DbConfig, output_path: str, status_path: Optional[str] = None) -> Pipeline:
    """
    Schema only, with routines; creates the output file
    """
    dump = Command(
        ["mysqldump"] + base_dump_args(db) + ["--no-data", "--routines", db.name],
        env={"MYSQL_PWD": db.password},
    )
    return Pipeline([dump, definer_filter()], stdout_path=output_path, status_path=status_path)


def data_dump(
    db: DbConfig, output_path: str, ignored_tables: Sequence[str], status_path: Optional[str] = None
) -> Pipeline:
    """
    Rows only, without triggers; appends to the output file
    """
    dump = Command(
        ["mysqldump"] + base_dump_args(db)
        + ["--no-create-info", "--skip-triggers"]
        + ignore_table_args(db.name, ignored_tables)
        + [db.name],
        env={"MYSQL_PWD": db.password},
    )
    return Pipeline([dump, definer_filter()], stdout_path=output_path, append=True, status_path=status_path)


def dump_succeeded(status_path: str) -> Pipeline:
    """
    Fails unless the last mysqldump run recorded exit status 0
    """
    return Pipeline.single(["grep", "-qx", "0", status_path])


def build_dump_script(db: DbConfig, artifact: DumpArtifact, ignored_tables: Sequence[str] = ()) -> RemoteScript:
    """
    Builds the remote script producing the dump file

    Args:
        db: Remote database parameters
        artifact: Dump file locations
        ignored_tables: Tables whose rows are left out

    Returns:
        RemoteScript: Probe, structure dump, data dump and optional gzip
    """
    output_path = artifact.remote_base_path
    status_path = artifact.remote_status_path
    # The pipes exit with the status of sed, so each mysqldump status is checked apart
    steps = [
        column_statistics_probe(),
        structure_dump(db, output_path, status_path),
        dump_succeeded(status_path),
        data_dump(db, output_path, ignored_tables, status_path),
        dump_succeeded(status_path),
        Pipeline.single(["rm", "-f", status_path]),
    ]
    if artifact.compressed:
        steps.append(Pipeline.single(["gzip", output_path]))
    return RemoteScript(steps)


def create_remote_dump(
    shell: RemoteShell,
    db: DbConfig,
    artifact: DumpArtifact,
    ignored_tables: Sequence[str] = (),
    timeout: float = LONG_TIMEOUT,
) -> None:
    """
    Creates the dump file on the remote server

    Args:
        shell: Remote shell of the environment to sync from
        db: Remote database parameters
        artifact: Dump file locations
        ignored_tables: Tables whose rows are left out
        timeout: Seconds before the dump is abandoned

    Raises:
        DumpError: If the remote command fails or times out
    """
    if not db.name:
        raise DumpError("Remote database name is empty")

    print("🔄 Creating database dump on remote server...")
    print("   Using --single-transaction (consistent dump without locking)")
    if ignored_tables:
        print(f"   Ignoring {len(ignored_tables)} table(s)")

    script = build_dump_script(db, artifact, ignored_tables)

    try:
        result = shell.execute(script, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise DumpError(f"Dump did not finish within {int(timeout)} seconds")

    if not result.ok:
        raise DumpError(f"Failed to create dump on remote server!\n{result.stderr}")

    print("✅ Remote dump created successfully")
