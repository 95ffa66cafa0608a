"""Reconciliation engine: SchemaModel x RelationModel -> ValidationReport.

Walk order is fixed by the IDL side only:

1. DuplicateFieldNumber for every message, declaration pre-order.
2. For each reconciled message (top-level declaration order, then messages
   reached through foreign-key fields in first-reference order): the table
   issue, field issues in declaration order (inlined sub-fields in place),
   then ExtraColumn issues in column ordinal order.

Relation-side order never decides issue order, so any permutation of the
catalog rows gives a byte-identical report.
"""

import logging
from typing import List, Optional, Sequence, Set, Tuple

from protosql.codes import IssueKind, severity_of
from protosql.config import EmbeddingPolicy, ValidationConfig
from protosql.report import MessagePairing, ValidationIssue, ValidationReport

from .compat import KEY_TAGS, TypeCompatibilityEngine
from .errors import ConfigError
from .idl_model import Cardinality, FieldDef, MessageDef, SchemaModel, type_display
from .naming import NameResolver
from .relation import RelationModel, TableDef

logger = logging.getLogger(__name__)


ISSUE_BY_VERDICT = {
    "type_mismatch": IssueKind.TYPE_MISMATCH,
    "nullability_mismatch": IssueKind.NULLABILITY_MISMATCH,
    "cardinality_mismatch": IssueKind.CARDINALITY_MISMATCH,
}


def find_message(schema: SchemaModel, name: str) -> Optional[MessageDef]:
    """Look a message up by full name ("User.Address") or unique simple name."""
    msg = schema.get_message(name)
    if msg is not None:
        return msg
    matches = [m for m in schema.iter_messages() if m.name == name]
    return matches[0] if len(matches) == 1 else None


def _prefixed(prefixes: Sequence[str], names: Sequence[str]) -> List[str]:
    result: List[str] = []
    for prefix in prefixes:
        for name in names:
            candidate = prefix + name
            if candidate not in result:
                result.append(candidate)
    return result


class Reconciler:
    """One reconciliation run. Collects issues; the models are never mutated."""

    def __init__(
        self,
        schema: SchemaModel,
        relation: RelationModel,
        resolver: Optional[NameResolver] = None,
        engine: Optional[TypeCompatibilityEngine] = None,
        config: Optional[ValidationConfig] = None,
    ):
        self.schema = schema
        self.relation = relation
        self.config = config or ValidationConfig()
        self.resolver = resolver or NameResolver.from_config(self.config)
        self.engine = engine or TypeCompatibilityEngine.from_config(self.config)
        self.issues: List[ValidationIssue] = []
        self.pairings: List[MessagePairing] = []

    def policy_for(self, message: MessageDef, field: FieldDef) -> EmbeddingPolicy:
        """Embedding policy in effect for a message-typed field."""
        policy = self.config.embedding_overrides.get(f"{message.full_name}.{field.name}")
        if policy is not None:
            return policy
        return self.config.embedding_policy_for(message.name, field.name)

    def add_issue(
        self,
        kind: IssueKind,
        message: str,
        detail: str,
        field: Optional[str] = None,
        table: Optional[str] = None,
        column: Optional[str] = None,
    ) -> None:
        self.issues.append(ValidationIssue(
            kind=kind,
            severity=severity_of(kind),
            message=message,
            field=field,
            table=table,
            column=column,
            detail=detail,
        ))

    def run(self) -> ValidationReport:
        self.check_field_numbers()

        queue = self.initial_messages()
        queued = {m.full_name for m in queue}
        i = 0
        while i < len(queue):
            msg = queue[i]
            i += 1
            for ref in self.reconcile_message(msg):
                if ref in queued:
                    continue
                target = self.schema.get_message(ref)
                if target is not None:
                    queued.add(ref)
                    queue.append(target)

        report = ValidationReport.from_issues(self.issues, self.pairings)
        logger.info(
            "reconciled %d message(s): %d error(s), %d warning(s)",
            len(self.pairings), report.summary.errors, report.summary.warnings,
        )
        return report

    def check_field_numbers(self) -> None:
        for msg in self.schema.iter_messages():
            seen = {}
            for f in msg.fields:
                if f.number in seen:
                    self.add_issue(
                        IssueKind.DUPLICATE_FIELD_NUMBER,
                        msg.full_name,
                        f"Field number {f.number} of '{f.name}' is already used by '{seen[f.number]}'",
                        field=f.name,
                    )
                else:
                    seen[f.number] = f.name

    def initial_messages(self) -> List[MessageDef]:
        """Messages reconciled as tables before any foreign-key references."""
        if self.config.messages is not None:
            selected = []
            for name in self.config.messages:
                msg = find_message(self.schema, name)
                if msg is None:
                    raise ConfigError(f"Message '{name}' is not declared in the schema")
                if msg not in selected:
                    selected.append(msg)
            return selected

        inlined: Set[str] = set()
        referenced: Set[str] = set()
        for msg in self.schema.iter_messages():
            for f in msg.fields:
                if not self.engine.requires_embedding(f.type) or f.type.name == msg.full_name:
                    continue
                if self.policy_for(msg, f) == EmbeddingPolicy.INLINE_PREFIXED:
                    inlined.add(f.type.name)
                else:
                    referenced.add(f.type.name)
        inline_only = inlined - referenced
        for name in sorted(inline_only):
            logger.debug("message %s is only inlined; not reconciled as a table", name)
        return [m for m in self.schema.messages if m.full_name not in inline_only]

    def reconcile_message(self, msg: MessageDef) -> List[str]:
        """Check one message against its table; returns foreign-key targets."""
        table, candidates = self.resolver.match_table(self.relation, msg.full_name)
        self.pairings.append(MessagePairing(message=msg.full_name, table=table.name if table else None))
        if table is None:
            self.add_issue(
                IssueKind.MISSING_TABLE,
                msg.full_name,
                f"No table for message '{msg.full_name}' (tried: {', '.join(candidates)})",
                table=candidates[0] if candidates else None,
            )
            return []

        matched: Set[str] = set()
        refs: List[str] = []
        self.check_fields(
            owner=msg.full_name,
            msg=msg,
            table=table,
            prefixes=("",),
            path="",
            optional=False,
            stack=(msg.full_name,),
            matched=matched,
            refs=refs,
        )
        if self.config.report_extra_columns:
            self.check_extra_columns(msg, table, matched)
        return refs

    def check_fields(
        self,
        owner: str,
        msg: MessageDef,
        table: TableDef,
        prefixes: Sequence[str],
        path: str,
        optional: bool,
        stack: Tuple[str, ...],
        matched: Set[str],
        refs: List[str],
    ) -> None:
        for f in msg.fields:
            field_path = f"{path}.{f.name}" if path else f.name
            cardinality = f.cardinality
            if optional and cardinality == Cardinality.SINGULAR:
                cardinality = Cardinality.OPTIONAL

            if self.engine.requires_embedding(f.type):
                if self.policy_for(msg, f) == EmbeddingPolicy.INLINE_PREFIXED:
                    self.check_inline(owner, msg, f, table, prefixes, field_path, cardinality, stack, matched, refs)
                else:
                    self.check_foreign_key(owner, msg, f, table, prefixes, field_path, cardinality, matched, refs)
                continue

            candidates = _prefixed(prefixes, self.resolver.column_candidates(msg.full_name, f.name))
            column = self.resolver.match_column(table, candidates)
            if column is None:
                self.add_issue(
                    IssueKind.MISSING_COLUMN,
                    owner,
                    f"No column for field '{field_path}' ({type_display(f.type)}) "
                    f"in table '{table.name}' (tried: {', '.join(candidates)})",
                    field=field_path,
                    table=table.name,
                    column=candidates[0],
                )
                continue
            matched.add(column.name)
            verdict = self.engine.compatible(f.type, cardinality, column)
            if not verdict.compatible:
                self.add_issue(
                    ISSUE_BY_VERDICT[verdict.kind],
                    owner,
                    verdict.detail,
                    field=field_path,
                    table=table.name,
                    column=column.name,
                )

    def check_foreign_key(
        self,
        owner: str,
        msg: MessageDef,
        f: FieldDef,
        table: TableDef,
        prefixes: Sequence[str],
        field_path: str,
        cardinality: Cardinality,
        matched: Set[str],
        refs: List[str],
    ) -> None:
        target = f.type.name
        if target not in refs:
            refs.append(target)
        if cardinality == Cardinality.REPEATED:
            # the link lives on the child table
            return

        candidates = _prefixed(prefixes, self.resolver.foreign_key_candidates(msg.full_name, f.name))
        column = self.resolver.match_column(table, candidates)
        if column is None:
            self.add_issue(
                IssueKind.MISSING_COLUMN,
                owner,
                f"No foreign key column for field '{field_path}' -> {target} "
                f"in table '{table.name}' (tried: {', '.join(candidates)})",
                field=field_path,
                table=table.name,
                column=candidates[0],
            )
            return
        matched.add(column.name)

        accepted = KEY_TAGS
        ref_table, _ = self.resolver.match_table(self.relation, target)
        pk = ref_table.primary_key_column() if ref_table is not None else None
        if pk is not None:
            accepted = frozenset({pk.native_type})
        verdict = self.engine.check_tags(accepted, cardinality, column, f"reference to {target}")
        if not verdict.compatible:
            self.add_issue(
                ISSUE_BY_VERDICT[verdict.kind],
                owner,
                verdict.detail,
                field=field_path,
                table=table.name,
                column=column.name,
            )

    def check_inline(
        self,
        owner: str,
        msg: MessageDef,
        f: FieldDef,
        table: TableDef,
        prefixes: Sequence[str],
        field_path: str,
        cardinality: Cardinality,
        stack: Tuple[str, ...],
        matched: Set[str],
        refs: List[str],
    ) -> None:
        target = self.schema.get_message(f.type.name)
        if cardinality == Cardinality.REPEATED:
            self.add_issue(
                IssueKind.CARDINALITY_MISMATCH,
                owner,
                f"Repeated message field '{field_path}' ({f.type.name}) cannot be inlined into prefixed columns",
                field=field_path,
                table=table.name,
            )
            return
        if target is None or target.full_name in stack:
            self.add_issue(
                IssueKind.TYPE_MISMATCH,
                owner,
                f"Field '{field_path}' embeds {f.type.name} inside itself; "
                "recursive messages cannot be inlined",
                field=field_path,
                table=table.name,
            )
            return

        sub_prefixes = [
            f"{name}_" for name in _prefixed(prefixes, self.resolver.column_candidates(msg.full_name, f.name))
        ]
        self.check_fields(
            owner=owner,
            msg=target,
            table=table,
            prefixes=sub_prefixes,
            path=field_path,
            optional=cardinality == Cardinality.OPTIONAL,
            stack=stack + (target.full_name,),
            matched=matched,
            refs=refs,
        )

    def check_extra_columns(self, msg: MessageDef, table: TableDef, matched: Set[str]) -> None:
        for column in table.columns:
            if column.name in matched or self.config.ignores_column(column.name):
                continue
            attrs = [column.declared_type or str(column.native_type)]
            attrs.append("nullable" if column.nullable else "not null")
            if column.default is not None:
                attrs.append(f"default {column.default}")
            elif column.has_default:
                attrs.append("has default")
            self.add_issue(
                IssueKind.EXTRA_COLUMN,
                msg.full_name,
                f"Column '{table.name}.{column.name}' ({', '.join(attrs)}) "
                f"has no corresponding field in message '{msg.full_name}'",
                table=table.name,
                column=column.name,
            )


def reconcile(
    schema: SchemaModel,
    relation: RelationModel,
    resolver: Optional[NameResolver] = None,
    engine: Optional[TypeCompatibilityEngine] = None,
    config: Optional[ValidationConfig] = None,
) -> ValidationReport:
    """Reconcile a parsed schema against an introspected relation model.

    Deterministic: identical inputs give an identically ordered report.

    Raises:
        ConfigError: `config.messages` names an undeclared message.
        CompatibilityMatrixError: a field type has no matrix entry.
    """
    return Reconciler(schema, relation, resolver=resolver, engine=engine, config=config).run()
