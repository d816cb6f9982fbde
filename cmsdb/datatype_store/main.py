"""
Data type store - command line entry point.

Commands:
- init: Create the database schema and root node
- tree: Print the data type tree (containers and data types)
- prevalues: Print a data type's pre-value collection as JSON

Usage:
    datatype-store init
    datatype-store tree
    datatype-store prevalues 12

Configuration is via DATATYPE_STORE_* environment variables, see
config.py. --database overrides DATATYPE_STORE_DATABASE_PATH.

Invariants:
    - Only init writes; tree and prevalues are read-only
    - Failures exit non-zero with the error code on stderr

How to change safely:
    - Add new commands, don't modify existing ones
    - Keep JSON output stable for scripts parsing it
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional, Tuple

import json_log_formatter

from .cache import PreValueCache
from .config import Settings
from .errors import DataTypeStoreError
from .models import ROOT_ID, DataTypeDefinition, PreValueCollection, PreValueMapping
from .persistence import Database, ScopeProvider
from .repositories import ContentTypeRepository, DataTypeDefinitionRepository
from .services import DataTypeService

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    """Configure root logging from settings.

    Args:
        settings: Loaded settings
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    if settings.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


def build_service(settings: Settings) -> Tuple[Database, DataTypeService]:
    """Wire the database, cache, repositories and service.

    Returns:
        (database, service); the database is not initialized
    """
    database = Database(
        settings.database_path,
        wal_mode=settings.wal_mode,
        busy_timeout_ms=settings.busy_timeout_ms,
    )
    scopes = ScopeProvider(database)
    cache = PreValueCache(
        ttl_seconds=settings.cache_ttl_seconds,
        maxsize=settings.cache_max_entries,
    )
    repository = DataTypeDefinitionRepository(scopes, cache, ContentTypeRepository(scopes))
    return database, DataTypeService(scopes, repository)


def format_tree(service: DataTypeService, parent_id: int = ROOT_ID, depth: int = 0) -> List[str]:
    """Render the tree below parent_id, one indented line per node."""
    lines = []
    for node in service.get_children(parent_id):
        if isinstance(node, DataTypeDefinition):
            label = f"{node.name} [{node.property_editor_alias}] (id={node.id})"
        else:
            label = f"{node.name}/ (id={node.id})"
        lines.append("  " * depth + label)
        lines.extend(format_tree(service, node.id, depth + 1))
    return lines


def pre_values_to_json(collection: PreValueCollection) -> str:
    """Serialize a collection, keeping the mapping/sequence distinction."""

    def entry(pre_value):
        return {"id": pre_value.id, "value": pre_value.value, "sort_order": pre_value.sort_order}

    if isinstance(collection, PreValueMapping):
        body = {alias: entry(pv) for alias, pv in collection.items()}
    else:
        body = [entry(pv) for pv in collection]
    return json.dumps(body, indent=2)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Data type store management tool")
    parser.add_argument("--database", help="SQLite database file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create schema and root node")
    subparsers.add_parser("tree", help="Print the data type tree")

    prevalues_parser = subparsers.add_parser("prevalues", help="Print a data type's pre-values")
    prevalues_parser.add_argument("data_type_id", type=int, help="Data type id")

    args = parser.parse_args(argv)

    settings = Settings()
    if args.database:
        settings = settings.model_copy(update={"database_path": args.database})
    setup_logging(settings)
    settings.log_config()

    database, service = build_service(settings)

    try:
        # Schema creation is idempotent
        database.initialize()

        if args.command == "init":
            print(f"Initialized {database.path}")

        elif args.command == "tree":
            lines = format_tree(service)
            print("\n".join(lines) if lines else "(empty)")

        elif args.command == "prevalues":
            if service.get(args.data_type_id) is None:
                print(f"No data type with id {args.data_type_id}", file=sys.stderr)
                return 1
            print(pre_values_to_json(service.get_pre_values(args.data_type_id)))

    except DataTypeStoreError as e:
        logger.error(f"Command failed: {e.message}", extra={"code": e.code, "details": e.details})
        print(f"{e.code}: {e.message}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
