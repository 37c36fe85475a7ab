from __future__ import annotations

from datetime import date

import pydantic
import pytest

from reconciler.domain.models import (
    AdHocRequest,
    BatchReport,
    DataSourceDescriptor,
    EntityType,
    FilterQuery,
    ReconciliationConfig,
    ReconciliationResult,
    ReconciliationRule,
    RuleFailure,
    SourceSystem,
    TextQuery,
)

TRADE_DATE = date(2024, 1, 15)

RULE = ReconciliationRule(
    name="orders-daily",
    source_system_a="system-a",
    source_system_b="system-b",
    entity_type=EntityType.ORDER,
)


def _descriptor(**overrides):
    payload = {
        "type": "POSTGRES",
        "name": "pg",
        "connectionConfig": {"url": "postgresql://h/db"},
        "entityTypes": ["ORDER"],
        "queries": {"ORDER": {"count": "SELECT COUNT(*) FROM orders WHERE d = :tradeDate"}},
    }
    payload.update(overrides)
    return DataSourceDescriptor.model_validate(payload)


def test_text_count_is_tagged_as_text_query() -> None:
    descriptor = _descriptor()

    template = descriptor.queries["ORDER"]

    assert isinstance(template, TextQuery)
    assert template.kind == "text"
    assert template.parameters == {}


def test_mapping_count_is_tagged_as_filter_query() -> None:
    descriptor = _descriptor(
        type="MONGODB",
        queries={"ORDER": {"count": {"tradeDate": "?tradeDate"}, "parameters": {"collection": "o"}}},
    )

    template = descriptor.queries["ORDER"]

    assert isinstance(template, FilterQuery)
    assert template.count == {"tradeDate": "?tradeDate"}
    assert template.parameters["collection"] == "o"


def test_empty_text_count_is_rejected() -> None:
    with pytest.raises(pydantic.ValidationError):
        _descriptor(queries={"ORDER": {"count": ""}})


def test_queries_for_undeclared_entity_types_are_rejected() -> None:
    with pytest.raises(pydantic.ValidationError, match="undeclared entity types: TRADE"):
        _descriptor(
            queries={
                "ORDER": {"count": "SELECT 1"},
                "TRADE": {"count": "SELECT 2"},
            }
        )


def test_descriptor_without_queries_is_allowed() -> None:
    descriptor = _descriptor(queries=None)

    assert descriptor.queries is None
    assert descriptor.supports(EntityType.ORDER)
    assert not descriptor.supports(EntityType.QUOTE)


def test_source_system_rejects_duplicate_data_source_names() -> None:
    ds = {"type": "POSTGRES", "name": "pg", "entityTypes": ["ORDER"]}

    with pytest.raises(pydantic.ValidationError, match="duplicate data source 'pg'"):
        SourceSystem.model_validate({"name": "s", "dataSources": [ds, ds]})


def test_source_system_lookup_and_entity_types() -> None:
    system = SourceSystem.model_validate(
        {
            "name": "s",
            "dataSources": [
                {"type": "POSTGRES", "name": "pg", "entityTypes": ["ORDER"]},
                {"type": "MONGODB", "name": "mongo", "entityTypes": ["QUOTE", "ORDER"]},
            ],
        }
    )

    assert system.find_data_source("mongo").name == "mongo"
    assert system.find_data_source("missing") is None
    assert system.entity_types() == {EntityType.ORDER, EntityType.QUOTE}
    assert [ds.name for ds in system.data_sources] == ["pg", "mongo"]


def test_config_rejects_duplicate_rule_names() -> None:
    rule = {"name": "r", "sourceSystemA": "a", "sourceSystemB": "b", "entityType": "ORDER"}

    with pytest.raises(pydantic.ValidationError, match="rule names must be unique"):
        ReconciliationConfig.model_validate(
            {"sourceSystems": [], "reconciliationRules": [rule, rule]}
        )


def test_rule_defaults_trade_date_field_and_serializes_with_aliases() -> None:
    assert RULE.trade_date_field == "tradeDate"
    assert RULE.to_dict() == {
        "name": "orders-daily",
        "sourceSystemA": "system-a",
        "sourceSystemB": "system-b",
        "entityType": "ORDER",
        "tradeDateField": "tradeDate",
    }


def test_rule_is_immutable() -> None:
    with pytest.raises(pydantic.ValidationError):
        RULE.name = "other"


def test_adhoc_request_accepts_wire_names() -> None:
    request = AdHocRequest.model_validate(
        {
            "sourceSystemA": "a",
            "dataSourceA": "a-pg",
            "sourceSystemB": "b",
            "dataSourceB": "b-mongo",
            "entityType": "QUOTE",
            "tradeDate": "2024-01-15",
            "persistRule": True,
        }
    )

    assert request.rule_name == ""
    assert request.entity_type is EntityType.QUOTE
    assert request.trade_date == TRADE_DATE
    assert request.persist_rule is True


@pytest.mark.parametrize(
    ("count_a", "count_b", "difference", "match"),
    [(500, 500, 0, True), (500, 498, 2, False), (3, 10, 7, False), (0, 0, 0, True)],
)
def test_build_derives_difference_and_match(count_a, count_b, difference, match) -> None:
    result = ReconciliationResult.build(RULE, TRADE_DATE, count_a, count_b, "a-pg", "b-mongo")

    assert result.difference == difference
    assert result.match is match
    assert result.rule_name == "orders-daily"
    assert result.entity_type is EntityType.ORDER
    assert result.timestamp.tzinfo is not None


def test_inconsistent_result_is_rejected() -> None:
    good = ReconciliationResult.build(RULE, TRADE_DATE, 5, 3, "a-pg", "b-mongo")
    payload = good.model_dump()

    with pytest.raises(pydantic.ValidationError, match="difference must equal"):
        ReconciliationResult(**{**payload, "difference": 1})
    with pytest.raises(pydantic.ValidationError, match="match must be true"):
        ReconciliationResult(**{**payload, "match": True})


def test_negative_counts_are_rejected() -> None:
    with pytest.raises(pydantic.ValidationError):
        ReconciliationResult.build(RULE, TRADE_DATE, -1, 0, "a-pg", "b-mongo")


def test_result_to_dict_uses_wire_names() -> None:
    payload = ReconciliationResult.build(RULE, TRADE_DATE, 500, 498, "a-pg", "b-mongo").to_dict()

    assert payload["ruleName"] == "orders-daily"
    assert payload["tradeDate"] == "2024-01-15"
    assert payload["countA"] == 500
    assert payload["countB"] == 498
    assert payload["dataSourceA"] == "a-pg"
    assert payload["match"] is False


def test_batch_report_serializes_results_and_failures() -> None:
    report = BatchReport(
        trade_date=TRADE_DATE,
        results=[ReconciliationResult.build(RULE, TRADE_DATE, 1, 1, "a", "b")],
        failures=[RuleFailure(rule_name="r2", error_kind="connector", message="boom")],
    )

    payload = report.to_dict()

    assert payload["tradeDate"] == "2024-01-15"
    assert payload["results"][0]["ruleName"] == "orders-daily"
    assert payload["failures"] == [{"ruleName": "r2", "errorKind": "connector", "message": "boom"}]
