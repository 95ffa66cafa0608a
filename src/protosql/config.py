"""Run configuration for reconciliation."""

from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class NamingConvention(str, Enum):
    """How message/field names map to table/column names."""
    SNAKE_PLURAL = "snake_plural"  # User -> users, emailAddress -> email_address
    SNAKE_SINGULAR = "snake_singular"  # User -> user
    EXPLICIT = "explicit"  # names used verbatim unless overridden


class EmbeddingPolicy(str, Enum):
    """How message-typed fields are represented in the database."""
    FOREIGN_KEY = "foreignKey"  # `<field>_id` column + own table
    INLINE_PREFIXED = "inlinePrefixed"  # `<field>_<subfield>` columns on the same table


class ValidationConfig(BaseModel):
    """Configuration recognized by the reconciliation engine.

    Accepts both the camelCase keys of the external interface
    (`namingConvention`, `reportExtraColumns`, ...) and snake_case names.
    """
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    naming_convention: Tuple[NamingConvention, ...] = Field(
        default=(NamingConvention.SNAKE_PLURAL,),
        alias="namingConvention",
        description="Convention, or ordered list of conventions tried in turn",
    )
    name_overrides: Dict[str, str] = Field(
        default_factory=dict,
        alias="nameOverrides",
        description="IDL name -> relation name; keys are `Message` or `Message.field`",
    )
    report_extra_columns: bool = Field(default=True, alias="reportExtraColumns")
    embedding_policy: EmbeddingPolicy = Field(default=EmbeddingPolicy.FOREIGN_KEY, alias="embeddingPolicy")
    embedding_overrides: Dict[str, EmbeddingPolicy] = Field(
        default_factory=dict,
        alias="embeddingOverrides",
        description="`Message.field` -> policy for that field only",
    )
    case_sensitive: bool = Field(default=False, alias="caseSensitive")
    irregular_plurals: Dict[str, str] = Field(default_factory=dict, alias="irregularPlurals")
    messages: Optional[Tuple[str, ...]] = Field(
        default=None,
        description="Restrict reconciliation to these messages (default: all top-level messages)",
    )
    ignore_columns: Tuple[str, ...] = Field(default=(), alias="ignoreColumns")
    type_mappings: Dict[str, Tuple[str, ...]] = Field(
        default_factory=dict,
        alias="typeMappings",
        description="Message type full name -> catalog type names it may be stored as",
    )

    @field_validator("naming_convention", mode="before")
    @classmethod
    def validate_naming_convention(cls, v):
        """Accept a single convention or an ordered, non-empty list."""
        if isinstance(v, (str, NamingConvention)):
            return (v,)
        v = tuple(v)
        if not v:
            raise ValueError("namingConvention must name at least one convention")
        return v

    def embedding_policy_for(self, message: str, field: str) -> EmbeddingPolicy:
        """Policy in effect for one message-typed field."""
        return self.embedding_overrides.get(f"{message}.{field}", self.embedding_policy)

    def ignores_column(self, name: str) -> bool:
        if self.case_sensitive:
            return name in self.ignore_columns
        return name.casefold() in {c.casefold() for c in self.ignore_columns}
