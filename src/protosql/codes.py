"""Issue kind and severity constants for protosql.reconcile().

Severity is a fixed function of the issue kind (SEVERITY_BY_KIND); nothing
else decides whether an issue blocks.
"""

from enum import Enum
from typing import Dict


class IssueKind(str, Enum):
    """Validation issue kinds."""

    # Errors (blocking)
    MISSING_TABLE = "MISSING_TABLE"
    MISSING_COLUMN = "MISSING_COLUMN"
    TYPE_MISMATCH = "TYPE_MISMATCH"
    CARDINALITY_MISMATCH = "CARDINALITY_MISMATCH"
    DUPLICATE_FIELD_NUMBER = "DUPLICATE_FIELD_NUMBER"

    # Warnings (schema works, contract is looser than declared)
    NULLABILITY_MISMATCH = "NULLABILITY_MISMATCH"
    EXTRA_COLUMN = "EXTRA_COLUMN"


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


SEVERITY_BY_KIND: Dict[IssueKind, Severity] = {
    IssueKind.MISSING_TABLE: Severity.ERROR,
    IssueKind.MISSING_COLUMN: Severity.ERROR,
    IssueKind.TYPE_MISMATCH: Severity.ERROR,
    IssueKind.CARDINALITY_MISMATCH: Severity.ERROR,
    IssueKind.DUPLICATE_FIELD_NUMBER: Severity.ERROR,
    IssueKind.NULLABILITY_MISMATCH: Severity.WARNING,
    IssueKind.EXTRA_COLUMN: Severity.WARNING,
}


def severity_of(kind: IssueKind) -> Severity:
    return SEVERITY_BY_KIND[IssueKind(kind)]
