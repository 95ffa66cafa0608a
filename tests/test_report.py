"""Tests for ValidationIssue / ValidationReport invariants."""

import pytest
from pydantic import ValidationError

from protosql.codes import IssueKind, Severity, severity_of
from protosql.report import MessagePairing, SeveritySummary, ValidationIssue, ValidationReport


def _issue(kind, severity=None, **kw):
    defaults = {"message": "User", "detail": "d"}
    defaults.update(kw)
    return ValidationIssue(kind=kind, severity=severity or severity_of(kind), **defaults)


def test_severity_is_fixed_by_kind():
    with pytest.raises(ValidationError):
        _issue(IssueKind.MISSING_COLUMN, severity=Severity.WARNING)
    with pytest.raises(ValidationError):
        _issue(IssueKind.EXTRA_COLUMN, severity=Severity.ERROR)


def test_issue_location():
    assert _issue(IssueKind.MISSING_COLUMN, field="age", table="users", column="age").location == "User.age -> users.age"
    assert _issue(IssueKind.MISSING_TABLE, table="users").location == "User -> users"
    assert _issue(IssueKind.DUPLICATE_FIELD_NUMBER, field="y").location == "User.y"
    assert _issue(IssueKind.EXTRA_COLUMN, table="users", column="x").location == "User -> users.x"


def test_issues_are_frozen():
    issue = _issue(IssueKind.MISSING_TABLE)
    with pytest.raises(ValidationError):
        issue.detail = "changed"


def test_from_issues_tallies_severities():
    issues = [
        _issue(IssueKind.MISSING_COLUMN, field="a"),
        _issue(IssueKind.NULLABILITY_MISMATCH, field="b"),
        _issue(IssueKind.EXTRA_COLUMN, column="c"),
    ]
    report = ValidationReport.from_issues(issues, [MessagePairing(message="User", table="users")])
    assert report.summary == SeveritySummary(errors=1, warnings=2)
    assert not report.ok
    assert [i.field for i in report.errors] == ["a"]
    assert len(report.warnings) == 2


def test_warnings_do_not_block():
    report = ValidationReport.from_issues([_issue(IssueKind.EXTRA_COLUMN, column="c")])
    assert report.ok


def test_summary_must_match_issues():
    with pytest.raises(ValidationError):
        ValidationReport(issues=(_issue(IssueKind.MISSING_TABLE),), summary=SeveritySummary())


def test_by_pairing_groups_in_pairing_order():
    issues = [
        _issue(IssueKind.DUPLICATE_FIELD_NUMBER, message="User.Address", field="x"),
        _issue(IssueKind.MISSING_TABLE, message="Team"),
        _issue(IssueKind.MISSING_COLUMN, message="User", field="age"),
    ]
    pairings = [MessagePairing(message="User", table="users"), MessagePairing(message="Team")]
    grouped = ValidationReport.from_issues(issues, pairings).by_pairing()
    assert list(grouped) == ["User", "Team", "User.Address"]
    assert [i.field for i in grouped["User"]] == ["age"]
    assert ValidationReport.from_issues(issues, pairings).issues_for("Team")[0].kind == IssueKind.MISSING_TABLE


def test_to_dict_shape():
    report = ValidationReport.from_issues(
        [_issue(IssueKind.MISSING_COLUMN, field="age", table="users", column="age")],
        [MessagePairing(message="User", table="users")],
    )
    data = report.to_dict()
    assert data["ok"] is False
    assert data["summary"] == {"errors": 1, "warnings": 0}
    assert data["pairings"] == [{"message": "User", "table": "users"}]
    assert data["issues"] == [{
        "kind": "MISSING_COLUMN",
        "severity": "error",
        "message": "User",
        "field": "age",
        "table": "users",
        "column": "age",
        "detail": "d",
    }]
    assert report.to_json() == report.to_json()
