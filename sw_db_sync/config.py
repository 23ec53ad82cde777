"""
Configuration module for sw_db_sync

Settings come from the .env and .env.local files of the local project and
from the process environment, which wins over both. They are loaded once
and handed explicitly to the components that need them.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values

from sw_db_sync.errors import ConfigError
from sw_db_sync.models import DbConfig, SshTarget
from sw_db_sync.override_file import default_override_file
from sw_db_sync.sync.credentials import db_config_from_env
from sw_db_sync.sync.post_sync import DEFAULT_CONSOLE_COMMAND
from sw_db_sync.utils.ssh import DEFAULT_SSH_CONFIG, lookup_host_config

ENVIRONMENTS = ("staging", "production")

ENV_FILES = (".env", ".env.local")

PREFIX = "SW_DB_SYNC_"


def env_key(environment: str, name: str) -> str:
    """
    Name of a per-environment variable, e.g. SW_DB_SYNC_STAGING_HOST
    """
    return f"{PREFIX}{environment.upper()}_{name}"


def parse_domain_mappings(value: Optional[str]) -> Dict[str, str]:
    """
    Parses "from1:to1,from2:to2" into an ordered mapping

    Pairs without both sides are skipped.
    """
    mappings: Dict[str, str] = {}
    if not value:
        return mappings

    for pair in value.split(","):
        source, separator, target = pair.partition(":")
        source, target = source.strip(), target.strip()
        if not separator or not source or not target:
            continue
        mappings[source] = target
    return mappings


def _is_true(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SyncSettings:
    """
    Settings of the local project, merged from its env files and the process environment
    """
    project_dir: Path
    values: Dict[str, str] = field(default_factory=dict)
    ssh_config_path: Optional[str] = DEFAULT_SSH_CONFIG

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """
        Gets a configuration value

        Args:
            key: Configuration key
            default: Default value if the key is not set or empty

        Returns:
            The configuration value or default value
        """
        value = self.values.get(key)
        if value is None or value == "":
            return default
        return value

    def get_environment_target(self, environment: str) -> SshTarget:
        """
        Builds the SSH target of a named environment

        Port, user and key left empty are completed from ~/.ssh/config
        when the host has an entry there.

        Args:
            environment: "staging" or "production"

        Returns:
            SshTarget: Validated target

        Raises:
            ConfigError: If the environment is unknown or its settings are incomplete
        """
        if environment not in ENVIRONMENTS:
            raise ConfigError(f"Invalid environment '{environment}', use one of: {', '.join(ENVIRONMENTS)}")

        host = self.get(env_key(environment, "HOST"), "")
        user = self.get(env_key(environment, "USER"), "")
        port = self.get(env_key(environment, "PORT"))
        key_path = self.get(env_key(environment, "KEY"))
        project_path = self.get(env_key(environment, "PROJECT_PATH"), "")

        if host and (not user or not port or not key_path):
            host_config = lookup_host_config(host, self.ssh_config_path)
            user = user or host_config.get("user", "")
            port = port or host_config.get("port")
            if not key_path and host_config.get("identityfile"):
                key_path = host_config["identityfile"][0]
            host = host_config.get("hostname", host)

        try:
            port_number = int(port) if port else 22
        except ValueError:
            raise ConfigError(f"Invalid SSH port '{port}' in {env_key(environment, 'PORT')}")

        target = SshTarget(
            host=host,
            user=user,
            remote_project_path=project_path,
            port=port_number,
            key_path=key_path,
        )
        try:
            target.validate()
        except ConfigError as e:
            raise ConfigError(
                f"{e} for {environment}. Set {env_key(environment, 'HOST')}, "
                f"{env_key(environment, 'USER')} and {env_key(environment, 'PROJECT_PATH')}"
            ) from e
        return target

    @property
    def local_domain(self) -> str:
        return self.get(f"{PREFIX}LOCAL_DOMAIN", "")

    @property
    def domain_mappings(self) -> Dict[str, str]:
        return parse_domain_mappings(self.get(f"{PREFIX}DOMAIN_MAPPINGS"))

    @property
    def clear_cache(self) -> bool:
        return _is_true(self.get(f"{PREFIX}CLEAR_CACHE"), True)

    @property
    def console_command(self) -> str:
        return self.get(f"{PREFIX}CONSOLE", DEFAULT_CONSOLE_COMMAND)

    @property
    def override_file(self) -> Path:
        return default_override_file(self.project_dir)

    def local_db_config(self) -> DbConfig:
        """
        Local database parameters from DATABASE_URL / DATABASE_* of the project
        """
        return db_config_from_env(self.values)

    def display(self, environment: Optional[str] = None):
        """
        Displays the current configuration
        """
        print("\n🔧 Loaded configuration:")
        print(f"   - Project: {self.project_dir}")
        if environment:
            for name in ("HOST", "PORT", "USER", "KEY", "PROJECT_PATH"):
                key = env_key(environment, name)
                print(f"   - {key}: {self.get(key, 'not configured')}")
        print(f"   - Local domain: {self.local_domain or 'not configured'}")
        mappings = self.domain_mappings
        if mappings:
            print(f"   - Domain mappings: {', '.join(f'{k} → {v}' for k, v in mappings.items())}")
        print(f"   - Clear cache: {'yes' if self.clear_cache else 'no'}")
        print()


def load_env_files(project_dir: Path) -> Dict[str, str]:
    """
    Reads .env and then .env.local of the project, later files winning

    Returns:
        Dict[str, str]: Merged values (variables without value are left out)
    """
    values: Dict[str, str] = {}
    for name in ENV_FILES:
        env_file = project_dir / name
        if env_file.is_file():
            for key, value in dotenv_values(env_file).items():
                if value is not None:
                    values[key] = value
    return values


def load_settings(
    project_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    ssh_config_path: Optional[str] = DEFAULT_SSH_CONFIG,
) -> SyncSettings:
    """
    Loads the settings of a local project

    Args:
        project_dir: Project root (defaults to the current directory)
        environ: Process environment overriding the files (defaults to os.environ)
        ssh_config_path: SSH configuration used to complete targets, None to skip

    Returns:
        SyncSettings: Merged settings
    """
    project_dir = Path(project_dir or Path.cwd()).resolve()
    values = load_env_files(project_dir)
    values.update(os.environ if environ is None else environ)
    return SyncSettings(project_dir=project_dir, values=dict(values), ssh_config_path=ssh_config_path)
