"""
Database synchronization module between environments

This module copies the database of a remote environment into the local
project: dump on the remote server, download, import, then the local
overrides and follow-up console commands.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from sw_db_sync.config import SyncSettings, env_key, load_settings
from sw_db_sync.errors import RemoteConfigError, SyncError
from sw_db_sync.models import DbConfig, DumpArtifact, OverrideReport, PostSyncReport, SshTarget, SyncOptions
from sw_db_sync.override_file import read_override_file
from sw_db_sync.sync.credentials import fetch_remote_db_config
from sw_db_sync.sync.dump import create_remote_dump
from sw_db_sync.sync.importer import import_dump
from sw_db_sync.sync.overrides import apply_local_overrides, random_id
from sw_db_sync.sync.post_sync import ConsoleRunner, clear_cache, run_post_sync_commands
from sw_db_sync.sync.transfer import cleanup_remote_file, download_dump
from sw_db_sync.utils.database import LocalDatabase
from sw_db_sync.utils.filesystem import remove_file
from sw_db_sync.utils.process import ProcessRunner
from sw_db_sync.utils.ssh import RemoteShell

Confirm = Callable[[str], bool]

CONFIRM_MESSAGE = "⚠️ This will OVERWRITE your local database. Continue?"


def ask_confirmation(message: str) -> bool:
    """
    Asks a yes/no question on the terminal, defaulting to no
    """
    answer = input(f"{message} [y/N]: ")
    return answer.strip().lower() in ("y", "yes")


def dump_file_name(environment: str, compressed: bool, now: datetime) -> str:
    """
    Name of the dump file, e.g. sync_staging_2024-01-31_142501.sql.gz
    """
    suffix = ".sql.gz" if compressed else ".sql"
    return f"sync_{environment}_{now.strftime('%Y-%m-%d_%H%M%S')}{suffix}"


class DatabaseSynchronizer:
    """
    Class to synchronize the database of a remote environment into the local project
    """

    def __init__(
        self,
        settings: SyncSettings,
        local_db: LocalDatabase,
        runner: Optional[ProcessRunner] = None,
        console: Optional[Callable] = None,
        confirm: Optional[Confirm] = None,
        id_factory: Callable[[], bytes] = random_id,
        clock: Callable[[], datetime] = datetime.now,
        verbose: bool = False,
    ):
        """
        Initializes the database synchronizer

        Args:
            settings: Settings of the local project
            local_db: Handle of the local database
            runner: Process runner for ssh, rsync and the mysql client
            console: Runner of application console commands
            confirm: Asks the user before the local database is overwritten
            id_factory: Source of primary keys for inserted rows
            clock: Source of timestamps (dump name, created_at)
            verbose: If True, displays detailed debug messages
        """
        self.settings = settings
        self.local_db = local_db
        self.runner = runner or ProcessRunner()
        self.console = console or ConsoleRunner(settings.project_dir, self.runner, settings.console_command)
        self.confirm = confirm or ask_confirmation
        self.id_factory = id_factory
        self.clock = clock
        self.verbose = verbose
        # Outcome of the local steps of the last sync, None when a step did not run
        self.override_report: Optional[OverrideReport] = None
        self.post_sync_report: Optional[PostSyncReport] = None
        self.cache_cleared: Optional[bool] = None

    @property
    def has_warnings(self) -> bool:
        """
        True if any step after the import of the last sync failed
        """
        if self.cache_cleared is False:
            return True
        if self.override_report and self.override_report.failures:
            return True
        return bool(self.post_sync_report and not self.post_sync_report.ok)

    def resolve_ignored_tables(self, options: SyncOptions) -> Tuple[str, ...]:
        if not options.ignore_tables:
            return ()
        spec = read_override_file(self.settings.override_file)
        return spec.ignore_tables if spec else ()

    def display_configuration(
        self,
        environment: str,
        target: SshTarget,
        remote_db: DbConfig,
        ignored_tables: Tuple[str, ...],
        options: SyncOptions,
    ) -> None:
        local_db = self.local_db.db_config
        print("\n📋 Configuration:")
        print(f"   - Environment: {environment.capitalize()}")
        print(f"   - Remote Host: {target.destination}:{target.port}")
        print(f"   - Remote Project: {target.remote_project_path}")
        print(f"   - Remote Database: {remote_db.name}")
        print(f"   - Local Database: {local_db.name}")
        print(f"   - Local Domain: {self.settings.local_domain or '(not configured)'}")
        print(f"   - Compress: {'Yes' if options.compress else 'No'}")
        print(f"   - Ignored Tables: {len(ignored_tables)} table(s)")
        mappings = self.settings.domain_mappings
        if mappings:
            print("   - Domain Mappings:")
            for source, target_domain in mappings.items():
                print(f"       {source} → {target_domain}")

        if ignored_tables and self.verbose:
            print("   Ignored tables:")
            for table in ignored_tables:
                print(f"     • {table}")
        print()

    def create_artifact(self, environment: str, target: SshTarget, compressed: bool) -> DumpArtifact:
        name = dump_file_name(environment, compressed, self.clock())
        return DumpArtifact(
            remote_path=target.remote_path(name),
            local_path=self.settings.project_dir / name,
            compressed=compressed,
        )

    def post_sync_commands(self) -> List[str]:
        spec = read_override_file(self.settings.override_file)
        return spec.post_sync_commands if spec else []

    def finish_local(self, options: SyncOptions) -> None:
        """
        Overrides, cache clear and console commands after a successful import
        """
        if not options.skip_overrides:
            self.override_report = apply_local_overrides(
                self.local_db,
                self.settings.override_file,
                self.settings.domain_mappings,
                self.settings.local_domain,
                id_factory=self.id_factory,
                clock=self.clock,
            )

        if not options.skip_cache_clear and self.settings.clear_cache:
            self.cache_cleared = clear_cache(self.console)

        if not options.skip_post_commands:
            self.post_sync_report = run_post_sync_commands(self.post_sync_commands(), self.console)

    def print_warnings(self) -> None:
        print("⚠️ Some post-sync operations failed:")
        if self.cache_cleared is False:
            print("   • cache clear")
        if self.override_report:
            for failure in self.override_report.failures:
                print(f"   • {failure}")
        if self.post_sync_report:
            for command, error in self.post_sync_report.failed:
                print(f"   • {command}: {error}")

    def print_summary(self, environment: str, artifact: DumpArtifact, options: SyncOptions, removed: bool) -> None:
        if removed:
            print("🧹 Local dump file removed.")
        else:
            print(f"📂 Dump file saved at: {artifact.local_path}")

        if self.has_warnings:
            self.print_warnings()

        print("\n🎉 Database sync completed successfully!")
        if options.skip_import:
            return

        print(f"   Your local database now contains data from {environment}.")
        if options.skip_overrides:
            return
        mappings = self.settings.domain_mappings
        if mappings:
            print("   Domain mappings applied:")
            for source, target_domain in mappings.items():
                print(f"     • {source} → https://{target_domain}")
        elif self.settings.local_domain:
            print(f"   URLs have been updated to: https://{self.settings.local_domain}")

    def print_ssh_hints(self, environment: str, error: RemoteConfigError) -> None:
        if error.details:
            print(f"   {error.details.strip()}")
        print("   Possible solutions:")
        print("   • Make sure your SSH key is loaded in the agent (ssh-add -l)")
        print("   • Inside DDEV, forward your keys with: ddev auth ssh")
        print(f"   • Point {env_key(environment, 'KEY')} to the private key to use")
        print(f"   • Check {env_key(environment, 'HOST')} and {env_key(environment, 'PORT')}")

    def run_pipeline(self, environment: str, options: SyncOptions) -> bool:
        """
        Runs every stage, raising SyncError on the first fatal failure

        Returns:
            bool: True when done (or cancelled by the user)
        """
        print(f"📥 Synchronizing database from {environment} to local environment...")

        target = self.settings.get_environment_target(environment)
        shell = RemoteShell(target, self.runner, verbose=self.verbose)

        print(f"🔄 Reading remote database configuration from {target.host}...")
        remote_db = fetch_remote_db_config(shell)
        print(f"✅ Remote database: {remote_db.masked()}")

        ignored_tables = self.resolve_ignored_tables(options)
        self.display_configuration(environment, target, remote_db, ignored_tables, options)

        if not options.skip_import and not options.assume_yes:
            if not self.confirm(CONFIRM_MESSAGE):
                print("⚠️ Sync cancelled.")
                return True

        artifact = self.create_artifact(environment, target, options.compress)

        print("\n🔄 Step 1/4: Creating remote dump")
        try:
            create_remote_dump(shell, remote_db, artifact, ignored_tables)
        except SyncError:
            # The dump may have been written partially, before or after gzip
            print("🧹 Cleaning up remote dump file...")
            cleanup_remote_file(
                shell, artifact.remote_base_path, artifact.remote_path, artifact.remote_status_path
            )
            raise

        print("\n🔄 Step 2/4: Downloading dump")
        download_dump(shell, artifact)

        if not options.skip_import:
            print("\n🔄 Step 3/4: Importing database")
            import_dump(self.runner, self.local_db.db_config, artifact.local_path, artifact.compressed)

            print("\n🔄 Step 4/4: Applying local overrides")
            self.finish_local(options)

        removed = False
        if not options.keep_dump and not options.skip_import:
            removed = remove_file(artifact.local_path)

        self.print_summary(environment, artifact, options, removed)
        return True

    def sync(self, environment: str, options: Optional[SyncOptions] = None) -> bool:
        """
        Synchronizes the database of a remote environment into the local project

        Args:
            environment: "staging" or "production"
            options: Switches of this run

        Returns:
            bool: True if the synchronization was successful, False otherwise
        """
        options = options or SyncOptions()
        self.override_report = None
        self.post_sync_report = None
        self.cache_cleared = None
        try:
            return self.run_pipeline(environment, options)
        except RemoteConfigError as e:
            print(f"❌ {e}")
            if e.auth_failure:
                self.print_ssh_hints(environment, e)
            elif e.details:
                print(f"   {e.details.strip()}")
            return False
        except SyncError as e:
            print(f"❌ {e}")
            return False


def sync_database(
    environment: str,
    options: Optional[SyncOptions] = None,
    project_dir: Optional[Path] = None,
    confirm: Optional[Confirm] = None,
    verbose: bool = False,
) -> bool:
    """
    Synchronizes the database of a remote environment into the local project

    Args:
        environment: "staging" or "production"
        options: Switches of this run
        project_dir: Root of the local project (defaults to the current directory)
        confirm: Asks the user before the local database is overwritten
        verbose: If True, displays detailed debug messages

    Returns:
        bool: True if the synchronization was successful, False otherwise
    """
    settings = load_settings(project_dir)
    if verbose:
        settings.display(environment)

    with LocalDatabase(settings.local_db_config()) as local_db:
        synchronizer = DatabaseSynchronizer(settings, local_db, confirm=confirm, verbose=verbose)
        return synchronizer.sync(environment, options)
