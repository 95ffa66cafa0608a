"""Validation report models.

A ValidationReport is the complete output of one reconciliation run: an
ordered tuple of issues, the message-to-table pairings in reconciliation
order, and severity tallies. All models are frozen; nothing downstream
mutates a report.
"""

from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator

from protosql._internal.canonical_json import canonical_dumps
from protosql.codes import IssueKind, Severity, severity_of


class ValidationIssue(BaseModel):
    """A single schema discrepancy."""
    model_config = ConfigDict(frozen=True)

    kind: IssueKind
    severity: Severity
    message: str  # IDL message, dotted for nested ("User.Address")
    field: Optional[str] = None  # dotted path for inlined sub-fields ("home.street")
    table: Optional[str] = None
    column: Optional[str] = None
    detail: str

    @model_validator(mode="after")
    def check_severity(self) -> "ValidationIssue":
        if self.severity != severity_of(self.kind):
            raise ValueError(
                f"{self.kind.value} issues have severity {severity_of(self.kind).value}, "
                f"got {self.severity.value}"
            )
        return self

    @property
    def location(self) -> str:
        """Display location, e.g. "User.age -> users.age"."""
        left = f"{self.message}.{self.field}" if self.field else self.message
        if self.table is None:
            return left
        right = f"{self.table}.{self.column}" if self.column else self.table
        return f"{left} -> {right}"


class MessagePairing(BaseModel):
    """A reconciled message and the table it matched (None when missing)."""
    model_config = ConfigDict(frozen=True)

    message: str
    table: Optional[str] = None


class SeveritySummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    errors: int = 0
    warnings: int = 0


class ValidationReport(BaseModel):
    """Ordered issues plus pairings and summary counts."""
    model_config = ConfigDict(frozen=True)

    issues: Tuple[ValidationIssue, ...] = ()
    pairings: Tuple[MessagePairing, ...] = ()
    summary: SeveritySummary = SeveritySummary()

    @model_validator(mode="after")
    def check_summary(self) -> "ValidationReport":
        errors = sum(1 for i in self.issues if i.severity == Severity.ERROR)
        warnings = len(self.issues) - errors
        if (self.summary.errors, self.summary.warnings) != (errors, warnings):
            raise ValueError(
                f"summary {self.summary.errors} error(s)/{self.summary.warnings} warning(s) "
                f"does not match issues ({errors}/{warnings})"
            )
        return self

    @classmethod
    def from_issues(
        cls,
        issues: List[ValidationIssue],
        pairings: Optional[List[MessagePairing]] = None,
    ) -> "ValidationReport":
        errors = sum(1 for i in issues if i.severity == Severity.ERROR)
        return cls(
            issues=tuple(issues),
            pairings=tuple(pairings or ()),
            summary=SeveritySummary(errors=errors, warnings=len(issues) - errors),
        )

    @property
    def ok(self) -> bool:
        """True if no Error-severity issue (warnings don't block)."""
        return self.summary.errors == 0

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == Severity.WARNING]

    def issues_for(self, message: str) -> List[ValidationIssue]:
        return [i for i in self.issues if i.message == message]

    def by_pairing(self) -> Dict[str, List[ValidationIssue]]:
        """Issues grouped by message, in pairing order.

        DuplicateFieldNumber issues for messages that were not reconciled
        (e.g. nested messages) get their own group after the pairings.
        """
        grouped: Dict[str, List[ValidationIssue]] = {p.message: [] for p in self.pairings}
        for issue in self.issues:
            grouped.setdefault(issue.message, []).append(issue)
        return grouped

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "summary": self.summary.model_dump(),
            "pairings": [p.model_dump() for p in self.pairings],
            "issues": [i.model_dump(mode="json") for i in self.issues],
        }

    def to_json(self) -> str:
        return canonical_dumps(self.to_dict())
