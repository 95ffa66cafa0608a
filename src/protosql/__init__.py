"""protosql: validate a live database schema against protobuf message contracts."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("protosql")
except PackageNotFoundError:
    __version__ = "dev"

# Public API exports
from protosql.api import check, discover_proto_files, load_config, load_schema
from protosql.codes import IssueKind, Severity
from protosql.config import EmbeddingPolicy, NamingConvention, ValidationConfig
from protosql.kernel.errors import (
    CompatibilityMatrixError,
    ConfigError,
    DuplicateMessageError,
    IntrospectionError,
    ParseError,
    ProtosqlError,
    UnresolvedTypeError,
)
from protosql.kernel.reconcile import reconcile
from protosql.report import ValidationIssue, ValidationReport

__all__ = [
    "__version__",
    "check",
    "discover_proto_files",
    "load_config",
    "load_schema",
    "reconcile",
    "IssueKind",
    "Severity",
    "EmbeddingPolicy",
    "NamingConvention",
    "ValidationConfig",
    "ValidationIssue",
    "ValidationReport",
    "ProtosqlError",
    "ParseError",
    "UnresolvedTypeError",
    "DuplicateMessageError",
    "IntrospectionError",
    "CompatibilityMatrixError",
    "ConfigError",
]
