"""
Read-only views of the source-system topology for operators.

``available_reconciliations`` lists, for every ordered pair of distinct
systems, the entity types both can count and every data-source pair able to
serve each of them.
"""

from __future__ import annotations

from typing import Any, Dict, List

from reconciler.domain.models import EntityType, SourceSystem
from reconciler.rule_store import RuleStore


def describe_system(system: SourceSystem) -> Dict[str, Any]:
    return {
        "name": system.name,
        "dataSources": [
            {
                "name": ds.name,
                "type": ds.kind.value,
                "entityTypes": [entity.value for entity in ds.entity_types],
            }
            for ds in system.data_sources
        ],
    }


def describe_systems(store: RuleStore) -> Dict[str, Dict[str, Any]]:
    return {system.name: describe_system(system) for system in store.get_all_source_systems()}


def _data_source_pairs(
    system_a: SourceSystem, system_b: SourceSystem, entity_type: EntityType
) -> List[Dict[str, str]]:
    sources_a = [ds.name for ds in system_a.data_sources if ds.supports(entity_type)]
    sources_b = [ds.name for ds in system_b.data_sources if ds.supports(entity_type)]
    return [{"dataSourceA": a, "dataSourceB": b} for a in sources_a for b in sources_b]


def available_reconciliations(store: RuleStore) -> List[Dict[str, Any]]:
    systems = store.get_all_source_systems()
    available: List[Dict[str, Any]] = []
    for system_a in systems:
        for system_b in systems:
            if system_a.name == system_b.name:
                continue
            shared = system_a.entity_types() & system_b.entity_types()
            # Declared enum order, not set order.
            common = [entity for entity in EntityType if entity in shared]
            if not common:
                continue
            available.append(
                {
                    "sourceSystemA": system_a.name,
                    "sourceSystemB": system_b.name,
                    "availableEntityTypes": [entity.value for entity in common],
                    "dataSourcePairs": {
                        entity.value: _data_source_pairs(system_a, system_b, entity)
                        for entity in common
                    },
                }
            )
    return available


__all__ = ["available_reconciliations", "describe_system", "describe_systems"]
