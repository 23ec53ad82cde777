"""
Post-import overrides of the local database

The copied database still points at the remote domains and settings.
Overrides come either from the declarative override file, which wins when
it exists, or from the domain settings in the environment.
"""

import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from sw_db_sync.errors import QueryError
from sw_db_sync.models import OverrideReport, OverrideSource, OverrideSpec, SystemConfigEntry
from sw_db_sync.override_file import read_override_file

APP_URL_KEY = "core.basicInformation.appUrl"

IdFactory = Callable[[], bytes]
Clock = Callable[[], datetime]


def random_id() -> bytes:
    """
    16 random bytes (UUID v4), the binary primary key format of the application
    """
    return uuid.uuid4().bytes


def select_override_source(file_exists: bool, has_mappings: bool, has_domain: bool) -> OverrideSource:
    """
    Decides where the overrides of a run come from

    Args:
        file_exists: The declarative override file exists
        has_mappings: Domain mappings are configured in the environment
        has_domain: A local domain is configured in the environment

    Returns:
        OverrideSource: The file when present, else the environment settings
    """
    if file_exists:
        return OverrideSource.CONFIG_FILE
    if has_mappings:
        return OverrideSource.ENV_MAPPINGS
    if has_domain:
        return OverrideSource.FALLBACK_DOMAIN
    return OverrideSource.NONE


def wrap_config_value(value: Any) -> str:
    """
    Encodes a value in the {"_value": ...} envelope of system_config
    """
    return json.dumps({"_value": value}, separators=(",", ":"))


def ensure_scheme(domain: str) -> str:
    if domain.startswith("http://") or domain.startswith("https://"):
        return domain
    return f"https://{domain}"


def url_patterns(domain: str) -> List[str]:
    """
    Stored URL forms matched for a source domain
    """
    patterns = []
    for prefix in ("https://", "http://", ""):
        patterns.append(f"{prefix}{domain}")
        patterns.append(f"{prefix}{domain}/")
    return patterns


def _short(sql: str, length: int = 60) -> str:
    return sql if len(sql) <= length else f"{sql[:length]}..."


def apply_env_overrides(database, domain_mappings: Dict[str, str], local_domain: str) -> OverrideReport:
    """
    Rewrites sales channel domains from the environment settings

    Every mapping rewrites URLs equal to https://from, http://from or from
    (with or without trailing slash) to https://to. Only if no row was
    touched, the local domain replaces every URL not already containing it.
    The public app URL follows the first mapping target, else the local
    domain.

    Args:
        database: Local database handle
        domain_mappings: Source domain -> target domain, in order
        local_domain: Fallback domain

    Returns:
        OverrideReport: Rows updated, and the database error if one stopped the rewrite
    """
    source = select_override_source(False, bool(domain_mappings), bool(local_domain))
    report = OverrideReport(source=source)

    if source is OverrideSource.NONE:
        print("⚠️ No local domain or domain mappings configured, skipping URL overrides")
        return report

    print("🔄 Applying local environment overrides...")

    try:
        for from_domain, to_domain in domain_mappings.items():
            to_url = f"https://{to_domain}"
            for pattern in url_patterns(from_domain):
                report.rows_updated += database.execute(
                    "UPDATE sales_channel_domain SET url = %(to_url)s WHERE url = %(from_url)s",
                    {"to_url": to_url, "from_url": pattern},
                )
            report.applied.append(f"{from_domain} → {to_domain}")
            print(f"   • Mapped {from_domain} → {to_domain}")

        if local_domain and report.rows_updated == 0:
            # Substring match: URLs already mentioning the domain stay as they are
            report.rows_updated += database.execute(
                "UPDATE sales_channel_domain SET url = %(url)s WHERE url NOT LIKE %(pattern)s",
                {"url": f"https://{local_domain}", "pattern": f"%{local_domain}%"},
            )
            report.applied.append(f"default domain {local_domain}")
            print(f"   • Set default domain to {local_domain}")

        app_domain = next(iter(domain_mappings.values()), None) or local_domain
        database.execute(
            "UPDATE system_config SET configuration_value = %(value)s WHERE configuration_key = %(key)s",
            {"value": wrap_config_value(f"https://{app_domain}"), "key": APP_URL_KEY},
        )
        report.applied.append(f"{APP_URL_KEY} = https://{app_domain}")
    except QueryError as e:
        print(f"❌ Failed to apply local overrides: {e}")
        report.failures.append(str(e))
        return report

    print("✅ Local overrides applied")
    return report


def _apply_sales_channel_domains(database, spec: OverrideSpec, report: OverrideReport) -> None:
    for channel_id, domain in spec.sales_channel_domains.items():
        url = ensure_scheme(domain)
        try:
            channel_bytes = bytes.fromhex(channel_id)
        except ValueError:
            message = f"Invalid sales channel id '{channel_id}'"
            print(f"⚠️ {message}")
            report.failures.append(message)
            continue

        try:
            count = database.execute(
                "UPDATE sales_channel_domain SET url = %(url)s WHERE sales_channel_id = %(sales_channel_id)s",
                {"url": url, "sales_channel_id": channel_bytes},
            )
        except QueryError as e:
            message = f"Failed to update domain for sales channel {channel_id}: {e}"
            print(f"⚠️ {message}")
            report.failures.append(message)
            continue

        if count > 0:
            report.rows_updated += count
            report.applied.append(f"sales channel {channel_id} → {url}")
            print(f"   • Updated domain for sales channel {channel_id[:8]}... → {url}")


def upsert_system_config(database, entry: SystemConfigEntry, id_factory: IdFactory, clock: Clock) -> int:
    """
    Updates a system_config key, inserting it when no row matches

    Args:
        database: Local database handle
        entry: Key, value and optional scope
        id_factory: Source of primary keys for inserted rows
        clock: Source of created_at timestamps

    Returns:
        int: Rows written

    Raises:
        QueryError: If a statement fails
    """
    value = wrap_config_value(entry.value)
    scope = bytes.fromhex(entry.scope_id) if entry.scope_id else None

    if scope is None:
        count = database.execute(
            "UPDATE system_config SET configuration_value = %(value)s "
            "WHERE configuration_key = %(key)s AND sales_channel_id IS NULL",
            {"value": value, "key": entry.key},
        )
    else:
        count = database.execute(
            "UPDATE system_config SET configuration_value = %(value)s "
            "WHERE configuration_key = %(key)s AND sales_channel_id = %(sales_channel_id)s",
            {"value": value, "key": entry.key, "sales_channel_id": scope},
        )

    if count == 0:
        count = database.execute(
            "INSERT INTO system_config (id, configuration_key, configuration_value, sales_channel_id, created_at) "
            "VALUES (%(id)s, %(key)s, %(value)s, %(sales_channel_id)s, %(created_at)s)",
            {
                "id": id_factory(),
                "key": entry.key,
                "value": value,
                "sales_channel_id": scope,
                "created_at": clock().strftime("%Y-%m-%d %H:%M:%S"),
            },
        )
    return count


def _apply_system_config(database, spec: OverrideSpec, report: OverrideReport, id_factory: IdFactory, clock: Clock) -> None:
    for entry in spec.system_config:
        try:
            count = upsert_system_config(database, entry, id_factory, clock)
        except (QueryError, ValueError) as e:
            message = f"Failed to update system config {entry.key}: {e}"
            print(f"⚠️ {message}")
            report.failures.append(message)
            continue

        if count > 0:
            report.rows_updated += count
            report.applied.append(f"system config {entry.key}")
            print(f"   • Updated system config: {entry.key}")


def _apply_sql_updates(database, spec: OverrideSpec, report: OverrideReport) -> None:
    for sql in spec.sql_updates:
        try:
            report.rows_updated += database.execute(sql)
        except QueryError as e:
            message = f"Failed to execute SQL: {_short(sql)} - Error: {e}"
            print(f"⚠️ {message}")
            report.failures.append(message)
            continue
        report.applied.append(f"sql {_short(sql)}")
        print(f"   • Executed SQL: {_short(sql)}")


def apply_file_overrides(
    database,
    spec: OverrideSpec,
    id_factory: IdFactory = random_id,
    clock: Clock = datetime.now,
) -> OverrideReport:
    """
    Applies the overrides of the declarative file

    Order: sales channel domains, system config upserts, raw SQL. Each item
    stands alone: a failing one is reported and the next one still runs.

    Args:
        database: Local database handle
        spec: Parsed override file
        id_factory: Source of primary keys for inserted system_config rows
        clock: Source of created_at timestamps

    Returns:
        OverrideReport: Applied items and accumulated failures
    """
    print(f"🔄 Found {spec.path.name}, applying configuration...")
    report = OverrideReport(source=OverrideSource.CONFIG_FILE)

    _apply_sales_channel_domains(database, spec, report)
    _apply_system_config(database, spec, report, id_factory, clock)
    _apply_sql_updates(database, spec, report)

    if report.applied:
        print(f"✅ Applied {len(report.applied)} override(s) from config file")
    else:
        print("ℹ️ No overrides applied from config file")
    if report.failures:
        print(f"⚠️ {len(report.failures)} override(s) failed")
    return report


def apply_local_overrides(
    database,
    override_file: Path,
    domain_mappings: Dict[str, str],
    local_domain: str,
    id_factory: IdFactory = random_id,
    clock: Clock = datetime.now,
) -> OverrideReport:
    """
    Applies the overrides of a run, from the file if it exists, else from the environment

    Raises:
        OverrideError: If the override file is malformed
    """
    spec: Optional[OverrideSpec] = read_override_file(override_file)
    source = select_override_source(spec is not None, bool(domain_mappings), bool(local_domain))

    if source is OverrideSource.CONFIG_FILE:
        return apply_file_overrides(database, spec, id_factory=id_factory, clock=clock)
    return apply_env_overrides(database, domain_mappings, local_domain)
