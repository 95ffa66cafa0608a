"""Public API for protosql.

High-level functions that load IDL files and configuration, introspect a
database and return a complete ValidationReport. The CLI is a thin wrapper
around check().
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from protosql.config import ValidationConfig
from protosql.kernel.errors import ConfigError, IntrospectionError
from protosql.kernel.idl_model import SchemaModel
from protosql.kernel.idl_parser import parse_sources
from protosql.kernel.introspect import READERS, introspect
from protosql.kernel.reconcile import reconcile
from protosql.report import ValidationReport

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike, Path]


def _normalize_path(path: PathLike) -> Path:
    """Normalize path input to Path object."""
    return Path(path) if not isinstance(path, Path) else path


def discover_proto_files(directory: PathLike) -> List[Path]:
    """Return the `*.proto` files directly inside `directory`, sorted by name."""
    directory = _normalize_path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Proto directory not found: {directory}")
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix == ".proto")


def load_schema(paths: Iterable[PathLike]) -> SchemaModel:
    """Read UTF-8 IDL files and parse them as one flattened namespace.

    Raises:
        FileNotFoundError: a path does not exist.
        ParseError / UnresolvedTypeError / DuplicateMessageError: invalid IDL.
    """
    sources = []
    for path in paths:
        path = _normalize_path(path)
        if not path.is_file():
            raise FileNotFoundError(f"Proto file not found: {path}")
        sources.append((str(path), path.read_text(encoding="utf-8")))
    if not sources:
        raise FileNotFoundError("No proto files to load")
    schema = parse_sources(sources)
    logger.info(
        "loaded %d proto file(s): %d top-level message(s)", len(sources), len(schema.messages)
    )
    return schema


def load_config(source: Union[PathLike, Dict, ValidationConfig, None] = None) -> ValidationConfig:
    """Load a ValidationConfig from a JSON file, a dict, or defaults.

    Raises:
        ConfigError: the file is missing, not JSON, or has invalid content.
    """
    if source is None:
        return ValidationConfig()
    if isinstance(source, ValidationConfig):
        return source
    if isinstance(source, dict):
        data = source
        origin = "<dict>"
    else:
        path = _normalize_path(source)
        origin = str(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise ConfigError(f"Config file not found: {path}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config {origin} must be a JSON object")
    try:
        return ValidationConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid config {origin}: {e}") from e


def _default_schema(connection, schema_model: SchemaModel) -> Optional[str]:
    """The single declared package, if the database has a schema of that name."""
    if len(schema_model.packages) != 1:
        return None
    package = schema_model.packages[0]
    try:
        names = inspect(connection).get_schema_names()
    except (SQLAlchemyError, NotImplementedError) as e:
        raise IntrospectionError("Could not list schemas", cause=e) from e
    if package in names:
        logger.info("--schema not specified, using proto package '%s'", package)
        return package
    logger.debug("package '%s' is not a database schema; using the default schema", package)
    return None


def _introspect_for(connection, schema_model: SchemaModel, schema: Optional[str], reader: str):
    if schema is None:
        schema = _default_schema(connection, schema_model)
    return introspect(connection, schema=schema, reader=READERS[reader]())


def check(
    proto_paths: Iterable[PathLike],
    bind,
    schema: Optional[str] = None,
    config: Union[PathLike, Dict, ValidationConfig, None] = None,
    reader: str = "inspector",
) -> ValidationReport:
    """Parse IDL files, introspect the database, and reconcile the two.

    Parsing runs first; any fatal parse/consistency error aborts before the
    database is touched. All catalog queries share one connection.

    Args:
        proto_paths: IDL files, parsed as one set.
        bind: SQLAlchemy Engine or Connection.
        schema: database schema; defaults to the single proto package when
            the database has it, else the connection default.
        config: ValidationConfig, dict, JSON file path, or None for defaults.
        reader: "inspector" or "information_schema".

    Raises:
        ProtosqlError subclasses for fatal errors.
    """
    cfg = load_config(config)
    if reader not in READERS:
        raise ConfigError(f"Unknown catalog reader '{reader}' (expected one of: {', '.join(sorted(READERS))})")
    schema_model = load_schema(proto_paths)

    if isinstance(bind, Engine):
        try:
            connection_cm = bind.connect()
        except SQLAlchemyError as e:
            raise IntrospectionError("Could not connect to database", cause=e) from e
        with connection_cm as connection:
            relation = _introspect_for(connection, schema_model, schema, reader)
    else:
        relation = _introspect_for(bind, schema_model, schema, reader)
    return reconcile(schema_model, relation, config=cfg)
