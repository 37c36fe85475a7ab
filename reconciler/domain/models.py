"""
Domain models for the count reconciler.

Describes the source-system topology (systems, data sources, per-entity-type
count query templates), reconciliation rules, ad-hoc requests and results.
Field aliases are the camelCase names used in configuration files and JSON
output; Python code uses the snake_case attribute names.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator, model_validator

_FROZEN = {"frozen": True, "populate_by_name": True}
_FROZEN_STRICT = {"frozen": True, "populate_by_name": True, "extra": "forbid"}

DEFAULT_TRADE_DATE_FIELD = "tradeDate"


class EntityType(str, Enum):
    """Categorical tag shared by every source system."""

    ORDER = "ORDER"
    QUOTE = "QUOTE"
    TRADE = "TRADE"
    EXECUTION = "EXECUTION"


class DataSourceType(str, Enum):
    """Backend kind; selects the connector factory."""

    POSTGRES = "POSTGRES"
    MONGODB = "MONGODB"
    COUCHBASE = "COUCHBASE"


class TextQuery(BaseModel):
    """Count query expressed as text (SQL or N1QL)."""

    kind: Literal["text"] = "text"
    count: str = Field(..., min_length=1, description="Count statement with date placeholders.")
    parameters: Dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN_STRICT


class FilterQuery(BaseModel):
    """Count query expressed as a structured document filter."""

    kind: Literal["filter"] = "filter"
    count: Dict[str, Any] = Field(..., description="Filter document with date sentinels.")
    parameters: Dict[str, str] = Field(default_factory=dict)

    model_config = _FROZEN_STRICT


QueryTemplate = Annotated[Union[TextQuery, FilterQuery], Field(discriminator="kind")]


def _tag_template(raw: Any) -> Any:
    """Infer the template variant from the shape of ``count``."""
    if not isinstance(raw, Mapping) or "kind" in raw:
        return raw
    tagged = dict(raw)
    tagged["kind"] = "filter" if isinstance(raw.get("count"), Mapping) else "text"
    return tagged


class DataSourceDescriptor(BaseModel):
    """One physical backend instance inside a source system."""

    name: str = Field(..., min_length=1)
    kind: DataSourceType = Field(..., alias="type")
    connection_config: Dict[str, Any] = Field(default_factory=dict, alias="connectionConfig")
    entity_types: Tuple[EntityType, ...] = Field(default=(), alias="entityTypes")
    queries: Optional[Dict[str, QueryTemplate]] = None

    model_config = _FROZEN_STRICT

    @field_validator("queries", mode="before")
    @classmethod
    def _tag_query_variants(cls, value: Any) -> Any:
        if isinstance(value, Mapping):
            return {key: _tag_template(entry) for key, entry in value.items()}
        return value

    @model_validator(mode="after")
    def _queries_keyed_by_entity_types(self) -> "DataSourceDescriptor":
        if self.queries:
            declared = {entity.value for entity in self.entity_types}
            undeclared = sorted(set(self.queries) - declared)
            if undeclared:
                raise ValueError(
                    f"data source '{self.name}' defines queries for undeclared entity types: "
                    f"{', '.join(undeclared)}"
                )
        return self

    def supports(self, entity_type: EntityType) -> bool:
        return entity_type in self.entity_types


class SourceSystem(BaseModel):
    """A named logical system backed by one or more data sources, in declared order."""

    name: str = Field(..., min_length=1)
    data_sources: Tuple[DataSourceDescriptor, ...] = Field(default=(), alias="dataSources")

    model_config = _FROZEN_STRICT

    @model_validator(mode="after")
    def _unique_data_source_names(self) -> "SourceSystem":
        seen: set[str] = set()
        for descriptor in self.data_sources:
            if descriptor.name in seen:
                raise ValueError(
                    f"duplicate data source '{descriptor.name}' in system '{self.name}'"
                )
            seen.add(descriptor.name)
        return self

    def find_data_source(self, name: str) -> Optional[DataSourceDescriptor]:
        for descriptor in self.data_sources:
            if descriptor.name == name:
                return descriptor
        return None

    def entity_types(self) -> set[EntityType]:
        return {entity for ds in self.data_sources for entity in ds.entity_types}


class ReconciliationRule(BaseModel):
    """Persistent definition of a count comparison between two systems."""

    name: str = Field(..., min_length=1)
    source_system_a: str = Field(..., alias="sourceSystemA")
    source_system_b: str = Field(..., alias="sourceSystemB")
    entity_type: EntityType = Field(..., alias="entityType")
    trade_date_field: str = Field(DEFAULT_TRADE_DATE_FIELD, alias="tradeDateField")

    model_config = _FROZEN_STRICT

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ReconciliationConfig(BaseModel):
    """Full topology file: source systems plus the initial rule set."""

    source_systems: Tuple[SourceSystem, ...] = Field(default=(), alias="sourceSystems")
    reconciliation_rules: Tuple[ReconciliationRule, ...] = Field(
        default=(), alias="reconciliationRules"
    )

    model_config = _FROZEN_STRICT

    @model_validator(mode="after")
    def _unique_names(self) -> "ReconciliationConfig":
        systems = [system.name for system in self.source_systems]
        if len(systems) != len(set(systems)):
            raise ValueError("source system names must be unique")
        rules = [rule.name for rule in self.reconciliation_rules]
        if len(rules) != len(set(rules)):
            raise ValueError("reconciliation rule names must be unique")
        return self


class AdHocRequest(BaseModel):
    """One-off comparison between two explicitly chosen data sources."""

    rule_name: str = Field("", alias="ruleName")
    source_system_a: str = Field(..., alias="sourceSystemA")
    data_source_a: str = Field(..., alias="dataSourceA")
    source_system_b: str = Field(..., alias="sourceSystemB")
    data_source_b: str = Field(..., alias="dataSourceB")
    entity_type: EntityType = Field(..., alias="entityType")
    trade_date: date = Field(..., alias="tradeDate")
    trade_date_field: str = Field(DEFAULT_TRADE_DATE_FIELD, alias="tradeDateField")
    persist_rule: bool = Field(False, alias="persistRule")

    model_config = _FROZEN


class ReconciliationResult(BaseModel):
    """
    Outcome of one comparison.

    ``difference`` is always ``abs(count_a - count_b)`` and ``match`` is true
    exactly when the difference is zero; use :meth:`build` to derive both.
    """

    rule_name: str = Field(..., alias="ruleName")
    source_system_a: str = Field(..., alias="sourceSystemA")
    source_system_b: str = Field(..., alias="sourceSystemB")
    entity_type: EntityType = Field(..., alias="entityType")
    trade_date: date = Field(..., alias="tradeDate")
    count_a: int = Field(..., ge=0, alias="countA")
    count_b: int = Field(..., ge=0, alias="countB")
    match: bool
    difference: int = Field(..., ge=0)
    timestamp: datetime
    data_source_a: str = Field(..., alias="dataSourceA")
    data_source_b: str = Field(..., alias="dataSourceB")

    model_config = _FROZEN

    @model_validator(mode="after")
    def _consistent_outcome(self) -> "ReconciliationResult":
        if self.difference != abs(self.count_a - self.count_b):
            raise ValueError("difference must equal |countA - countB|")
        if self.match != (self.difference == 0):
            raise ValueError("match must be true exactly when difference is 0")
        return self

    @classmethod
    def build(
        cls,
        rule: ReconciliationRule,
        trade_date: date,
        count_a: int,
        count_b: int,
        data_source_a: str,
        data_source_b: str,
        timestamp: Optional[datetime] = None,
    ) -> "ReconciliationResult":
        difference = abs(count_a - count_b)
        return cls(
            rule_name=rule.name,
            source_system_a=rule.source_system_a,
            source_system_b=rule.source_system_b,
            entity_type=rule.entity_type,
            trade_date=trade_date,
            count_a=count_a,
            count_b=count_b,
            match=difference == 0,
            difference=difference,
            timestamp=timestamp or datetime.now(timezone.utc),
            data_source_a=data_source_a,
            data_source_b=data_source_b,
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class RuleFailure(BaseModel):
    """A rule that could not be executed during a batch run."""

    rule_name: str = Field(..., alias="ruleName")
    error_kind: str = Field(..., alias="errorKind")
    message: str

    model_config = _FROZEN

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class BatchReport(BaseModel):
    """Successful results (in rule order) and failures of one batch run."""

    trade_date: date = Field(..., alias="tradeDate")
    results: Tuple[ReconciliationResult, ...] = ()
    failures: Tuple[RuleFailure, ...] = ()

    model_config = _FROZEN

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


__all__ = [
    "DEFAULT_TRADE_DATE_FIELD",
    "EntityType",
    "DataSourceType",
    "TextQuery",
    "FilterQuery",
    "QueryTemplate",
    "DataSourceDescriptor",
    "SourceSystem",
    "ReconciliationRule",
    "ReconciliationConfig",
    "AdHocRequest",
    "ReconciliationResult",
    "RuleFailure",
    "BatchReport",
]
