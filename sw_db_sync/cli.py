#!/usr/bin/env python3
"""
CLI for the Shopware database sync tool

This script provides a command-line interface to copy the database of a
remote environment into the local project.
"""

import sys
from pathlib import Path

import click

from sw_db_sync import __version__
from sw_db_sync.commands.apply_config import apply_config_only as apply_config_file
from sw_db_sync.commands.database import DatabaseSynchronizer
from sw_db_sync.config import ENVIRONMENTS, load_settings
from sw_db_sync.models import SyncOptions
from sw_db_sync.utils.database import LocalDatabase

# Common options
project_dir_option = click.option(
    "--project-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Root of the local project (defaults to the current directory)",
)
skip_cache_clear_option = click.option("--skip-cache-clear", is_flag=True, help="Do not clear the cache afterwards")
skip_post_commands_option = click.option(
    "--skip-post-commands", is_flag=True, help="Do not run the post_sync_commands of the config file"
)


def confirm_prompt(message: str) -> bool:
    return click.confirm(message, default=False)


def run_apply_config(settings, config_file, skip_cache_clear, skip_post_commands) -> bool:
    with LocalDatabase(settings.local_db_config()) as local_db:
        return apply_config_file(
            settings,
            local_db,
            config_file=config_file,
            skip_cache_clear=skip_cache_clear,
            skip_post_commands=skip_post_commands,
        )


# Main command group
@click.group()
@click.version_option(__version__)
def cli():
    """
    Database sync tools for Shopware.

    Copies the database of a staging or production server into the local
    environment and adapts domains and settings for local use.
    """
    pass


@cli.command("sync")
@click.argument("environment", type=click.Choice(ENVIRONMENTS, case_sensitive=False), required=False)
@click.option("--keep-dump", "-k", is_flag=True, help="Keep the local dump file after importing")
@click.option("--skip-import", is_flag=True, help="Only download the dump, do not import it")
@click.option("--no-gzip", is_flag=True, help="Do not compress the dump")
@click.option("--skip-overrides", is_flag=True, help="Do not apply local domain and config overrides")
@click.option("--no-ignore", is_flag=True, help="Dump the data of every table, ignoring ignore_tables")
@skip_cache_clear_option
@skip_post_commands_option
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.option(
    "--apply-config-only",
    is_flag=False,
    flag_value="",
    default=None,
    metavar="[PATH]",
    help="Only apply the config file (optionally a custom one) to the local database",
)
@click.option("--verbose", "-v", is_flag=True, help="Show detailed information during execution")
@project_dir_option
def sync_command(environment, keep_dump, skip_import, no_gzip, skip_overrides, no_ignore,
                 skip_cache_clear, skip_post_commands, yes, apply_config_only, verbose, project_dir):
    """
    Synchronizes the database of ENVIRONMENT into the local project.
    """
    settings = load_settings(project_dir)

    if apply_config_only is not None:
        if not run_apply_config(settings, apply_config_only or None, skip_cache_clear, skip_post_commands):
            sys.exit(1)
        return

    if not environment:
        raise click.UsageError("Missing argument 'ENVIRONMENT' (staging or production)")

    if verbose:
        settings.display(environment.lower())

    options = SyncOptions(
        keep_dump=keep_dump,
        skip_import=skip_import,
        compress=not no_gzip,
        skip_overrides=skip_overrides,
        ignore_tables=not no_ignore,
        skip_cache_clear=skip_cache_clear,
        skip_post_commands=skip_post_commands,
        assume_yes=yes,
        verbose=verbose,
    )

    with LocalDatabase(settings.local_db_config()) as local_db:
        synchronizer = DatabaseSynchronizer(settings, local_db, confirm=confirm_prompt, verbose=verbose)
        success = synchronizer.sync(environment.lower(), options)

    if not success:
        sys.exit(1)


@cli.command("apply-config")
@click.argument("config_file", required=False)
@skip_cache_clear_option
@skip_post_commands_option
@project_dir_option
def apply_config_command(config_file, skip_cache_clear, skip_post_commands, project_dir):
    """
    Applies CONFIG_FILE (default sw-db-sync-config.json) to the local database.
    """
    settings = load_settings(project_dir)
    if not run_apply_config(settings, config_file, skip_cache_clear, skip_post_commands):
        sys.exit(1)


def main():
    """
    Main entry point
    """
    try:
        cli()
    except Exception as e:
        click.echo(f"❌ Error: {str(e)}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
