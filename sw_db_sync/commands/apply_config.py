"""
Applies the override file to the local database without syncing

Useful after editing sw-db-sync-config.json, or to apply a different
override file to an already imported database.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from sw_db_sync.config import SyncSettings
from sw_db_sync.errors import SyncError
from sw_db_sync.override_file import OVERRIDE_FILE_NAME, read_override_file
from sw_db_sync.sync.overrides import apply_file_overrides, random_id
from sw_db_sync.sync.post_sync import ConsoleRunner, clear_cache, run_post_sync_commands
from sw_db_sync.utils.database import LocalDatabase
from sw_db_sync.utils.process import ProcessRunner


def resolve_config_path(project_dir: Path, config_file: Optional[str] = None) -> Path:
    """
    Resolves the override file to apply

    Args:
        project_dir: Root of the local project
        config_file: File name or path; relative paths start at the project root

    Returns:
        Path: Location of the file (not checked for existence)
    """
    path = Path(config_file or OVERRIDE_FILE_NAME)
    if path.is_absolute():
        return path
    return project_dir / path


def apply_config_only(
    settings: SyncSettings,
    local_db: LocalDatabase,
    config_file: Optional[str] = None,
    skip_cache_clear: bool = False,
    skip_post_commands: bool = False,
    runner: Optional[ProcessRunner] = None,
    console: Optional[Callable] = None,
    id_factory: Callable[[], bytes] = random_id,
    clock: Callable[[], datetime] = datetime.now,
) -> bool:
    """
    Applies an override file, its post-sync commands and the cache clear

    Args:
        settings: Settings of the local project
        local_db: Handle of the local database
        config_file: Override file (defaults to sw-db-sync-config.json)
        skip_cache_clear: If True, the cache is left alone
        skip_post_commands: If True, the commands of the file are not run
        runner: Process runner for console commands
        console: Runner of application console commands
        id_factory: Source of primary keys for inserted rows
        clock: Source of created_at timestamps

    Returns:
        bool: True if the file was found and applied
    """
    path = resolve_config_path(settings.project_dir, config_file)

    if not path.is_file():
        print(f"❌ Configuration file not found: {config_file or OVERRIDE_FILE_NAME}")
        print(f"   Searched in: {path}")
        print("   Usage examples:")
        print("     sw-db-sync apply-config")
        print("     sw-db-sync apply-config custom-config.json")
        print("     sw-db-sync apply-config /absolute/path/to/config.json")
        return False

    print(f"📝 Configuration file found: {path}")

    try:
        spec = read_override_file(path)
        local_db.connect()
        apply_file_overrides(local_db, spec, id_factory=id_factory, clock=clock)
    except SyncError as e:
        print(f"❌ {e}")
        return False

    console = console or ConsoleRunner(settings.project_dir, runner, settings.console_command)

    if not skip_post_commands and spec.post_sync_commands:
        run_post_sync_commands(spec.post_sync_commands, console)

    if not skip_cache_clear and settings.clear_cache:
        clear_cache(console)

    print("\n🎉 Configuration applied successfully!")
    return True
