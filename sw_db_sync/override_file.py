"""
Declarative override file

The optional sw-db-sync-config.json in the project root lists tables to
leave out of the data dump, the overrides applied after the import and
console commands run afterwards. It is read again on every run. Custom
files given with a .yaml or .yml extension are parsed as YAML.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from sw_db_sync.errors import OverrideError
from sw_db_sync.models import OverrideSpec, SystemConfigEntry

OVERRIDE_FILE_NAME = "sw-db-sync-config.json"

YAML_SUFFIXES = (".yaml", ".yml")


def default_override_file(project_dir: Path) -> Path:
    return project_dir / OVERRIDE_FILE_NAME


def _load_document(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix.lower() in YAML_SUFFIXES:
                return yaml.safe_load(f)
            return json.load(f)
    except json.JSONDecodeError as e:
        raise OverrideError(f"Invalid JSON in {path.name}: {e}") from e
    except yaml.YAMLError as e:
        raise OverrideError(f"Invalid YAML in {path.name}: {e}") from e
    except OSError as e:
        raise OverrideError(f"Unable to read {path}: {e}") from e


def _string_list(document: Dict[str, Any], key: str, path: Path) -> List[str]:
    value = document.get(key)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise OverrideError(f"'{key}' in {path.name} must be a list of strings")
    return value


def _string_map(document: Dict[str, Any], key: str, path: Path) -> Dict[str, str]:
    value = document.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict) or not all(isinstance(item, str) for item in value.values()):
        raise OverrideError(f"'{key}' in {path.name} must map ids to strings")
    return {str(k): v for k, v in value.items()}


def _system_config(document: Dict[str, Any], path: Path) -> List[SystemConfigEntry]:
    value = document.get("system_config")
    if value is None:
        return []
    if not isinstance(value, dict):
        raise OverrideError(f"'system_config' in {path.name} must be an object")

    entries = []
    for key, item in value.items():
        # Either a plain value or {"_value": ..., "scope_id": ...}
        if isinstance(item, dict) and "_value" in item:
            scope_id = item.get("scope_id", item.get("sales_channel_id"))
            if scope_id is not None and not isinstance(scope_id, str):
                raise OverrideError(f"Scope of '{key}' in {path.name} must be a hex string")
            entries.append(SystemConfigEntry(key=str(key), value=item["_value"], scope_id=scope_id or None))
        else:
            entries.append(SystemConfigEntry(key=str(key), value=item))
    return entries


def _dedupe(tables: List[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(table for table in tables if table))


def read_override_file(path: Path) -> Optional[OverrideSpec]:
    """
    Loads the declarative override file

    Args:
        path: Location of the file

    Returns:
        Optional[OverrideSpec]: Parsed file, None if it does not exist

    Raises:
        OverrideError: If the file is not valid JSON/YAML or has wrong types
    """
    if not path.is_file():
        return None

    document = _load_document(path)
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise OverrideError(f"{path.name} must contain an object at the top level")

    return OverrideSpec(
        path=path,
        ignore_tables=_dedupe(_string_list(document, "ignore_tables", path)),
        sales_channel_domains=_string_map(document, "sales_channel_domains", path),
        system_config=_system_config(document, path),
        sql_updates=_string_list(document, "sql_updates", path),
        post_sync_commands=_string_list(document, "post_sync_commands", path),
    )


def read_ignored_tables(path: Path) -> Tuple[str, ...]:
    """
    Tables whose rows are left out of the dump (empty: dump everything)
    """
    spec = read_override_file(path)
    return spec.ignore_tables if spec else ()
