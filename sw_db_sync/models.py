"""
Data structures shared by the synchronization stages
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from sw_db_sync.errors import ConfigError


@dataclass
class SshTarget:
    """
    SSH coordinates of a named remote environment
    """
    host: str
    user: str
    remote_project_path: str
    port: int = 22
    key_path: Optional[str] = None

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}"

    def validate(self) -> None:
        """
        Ensures the target can be used for remote operations

        Raises:
            ConfigError: If host, user or project path are empty
        """
        if not self.host:
            raise ConfigError("SSH host is not configured")
        if not self.user:
            raise ConfigError("SSH user is not configured")
        if not self.remote_project_path:
            raise ConfigError("Project path is not configured")

    def remote_path(self, name: str) -> str:
        """
        Joins a file name onto the remote project path

        Args:
            name: File name relative to the project root

        Returns:
            str: Absolute remote path
        """
        # Avoid double slash when remote_project_path already ends with /
        return f"{self.remote_project_path.rstrip('/')}/{name}"


@dataclass
class DbConfig:
    """
    Connection parameters of a MySQL database
    """
    name: str = ""
    host: str = "localhost"
    port: int = 3306
    user: str = ""
    password: str = ""

    def masked(self) -> str:
        """
        Renders the config for display without the password
        """
        return f"{self.user}@{self.host}:{self.port}/{self.name}"


@dataclass
class SystemConfigEntry:
    """
    One key of the system_config table to upsert
    """
    key: str
    value: Any
    scope_id: Optional[str] = None


@dataclass
class OverrideSpec:
    """
    Contents of the declarative override file
    """
    path: Path
    ignore_tables: Tuple[str, ...] = ()
    sales_channel_domains: Dict[str, str] = field(default_factory=dict)
    system_config: List[SystemConfigEntry] = field(default_factory=list)
    sql_updates: List[str] = field(default_factory=list)
    post_sync_commands: List[str] = field(default_factory=list)


@dataclass
class DumpArtifact:
    """
    The dump file as it moves from the remote host to the local machine
    """
    remote_path: str
    local_path: Path
    compressed: bool

    @property
    def remote_base_path(self) -> str:
        """
        Path mysqldump writes to, before gzip adds its extension
        """
        if self.compressed and self.remote_path.endswith(".gz"):
            return self.remote_path[:-3]
        return self.remote_path

    @property
    def remote_status_path(self) -> str:
        """
        Path receiving the exit status of each mysqldump run
        """
        return self.remote_base_path + ".status"


class OverrideSource(Enum):
    """
    Where post-import overrides come from for a run
    """
    CONFIG_FILE = "config_file"
    ENV_MAPPINGS = "env_mappings"
    FALLBACK_DOMAIN = "fallback_domain"
    NONE = "none"


@dataclass
class OverrideReport:
    """
    What the override engine changed, and what it had to skip
    """
    source: OverrideSource
    rows_updated: int = 0
    applied: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)


@dataclass
class PostSyncReport:
    """
    Outcome of the follow-up console commands
    """
    succeeded: List[str] = field(default_factory=list)
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class SyncOptions:
    """
    Switches of a single synchronization run
    """
    keep_dump: bool = False
    skip_import: bool = False
    compress: bool = True
    skip_overrides: bool = False
    ignore_tables: bool = True
    skip_cache_clear: bool = False
    skip_post_commands: bool = False
    assume_yes: bool = False
    verbose: bool = False
