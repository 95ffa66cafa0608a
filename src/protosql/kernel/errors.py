"""Fatal error taxonomy for protosql.

Everything here aborts a run. Schema discrepancies are never raised; they
are reported as ValidationIssue values in the ValidationReport.
"""

from typing import Optional, Sequence


class ProtosqlError(Exception):
    """Base exception for all fatal protosql errors."""
    pass


class ParseError(ProtosqlError):
    """Raised when IDL source text is malformed."""
    def __init__(
        self,
        message: str,
        line: int,
        column: int,
        expected: Optional[str] = None,
        found: Optional[str] = None,
        source: Optional[str] = None,
    ):
        self.line = line
        self.column = column
        self.expected = expected
        self.found = found
        self.source = source
        self.reason = message
        location = f"{source or '<input>'}:{line}:{column}"
        super().__init__(f"{location}: {message}")


class SchemaModelError(ProtosqlError):
    """Base exception for cross-file consistency failures."""
    pass


class UnresolvedTypeError(SchemaModelError):
    """Raised when a type reference matches no declaration in the parsed set."""
    def __init__(self, type_name: str, scope: str, source: Optional[str] = None):
        self.type_name = type_name
        self.scope = scope
        self.source = source
        where = f" in '{scope}'" if scope else ""
        origin = f" ({source})" if source else ""
        super().__init__(f"Unresolved type '{type_name}' referenced{where}{origin}")


class DuplicateMessageError(SchemaModelError):
    """Raised when two declarations share a top-level name."""
    def __init__(self, name: str, sources: Sequence[str]):
        self.name = name
        self.sources = tuple(sources)
        super().__init__(
            f"Top-level name '{name}' is declared more than once: {', '.join(self.sources)}"
        )


class IntrospectionError(ProtosqlError):
    """Raised when a catalog query fails. The relation model is discarded."""
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class CompatibilityMatrixError(ProtosqlError):
    """Raised when the compatibility matrix has no entry for an IDL type."""
    pass


class ConfigError(ProtosqlError):
    """Raised when a configuration file or mapping is invalid."""
    pass
