"""
Column registry for the sample filter language
Maps filter column names like 'run' or 'cells' to the relation/column they read from
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional
import models
from enums import ColumnKind, SourceRelation


class FieldResolutionError(Exception):
    """Custom exception for field resolution errors"""

    pass


@dataclass(frozen=True)
class FilterColumn:
    name: str
    kind: ColumnKind
    source_relation: SourceRelation
    source_column: str

    @property
    def is_numeric(self) -> bool:
        return self.kind == ColumnKind.numeric_comparison


def _build_registry(*columns: FilterColumn) -> Mapping[str, FilterColumn]:
    registry: Dict[str, FilterColumn] = {}
    for column in columns:
        if column.name in registry:
            raise FieldResolutionError(f"Duplicate filter column: {column.name}")
        registry[column.name] = column
    return MappingProxyType(registry)


COLUMN_REGISTRY: Mapping[str, FilterColumn] = _build_registry(
    FilterColumn("run", ColumnKind.text_wildcard, SourceRelation.run, "name"),
    FilterColumn("name", ColumnKind.text_wildcard, SourceRelation.sample, "name"),
    FilterColumn("dna_nr", ColumnKind.text_wildcard, SourceRelation.sample, "dna_nr"),
    FilterColumn("project", ColumnKind.text_wildcard, SourceRelation.sample, "project"),
    FilterColumn("primer_set", ColumnKind.text_wildcard, SourceRelation.sample, "primer_set"),
    FilterColumn("filename", ColumnKind.text_wildcard, SourceRelation.fastq, "filename"),
    FilterColumn("cells", ColumnKind.numeric_comparison, SourceRelation.sample, "cells"),
    FilterColumn("lims_id", ColumnKind.numeric_comparison, SourceRelation.sample, "lims_id"),
)


class FieldResolver:
    """Resolves filter column names to SQL expressions and joins"""

    def __init__(self, registry: Mapping[str, FilterColumn] = COLUMN_REGISTRY):
        self.registry = registry
        self.table_configs = {
            SourceRelation.sample: {"table": models.qualified("sample"), "alias": "s"},
            SourceRelation.run: {"table": models.qualified("run"), "alias": "r"},
            SourceRelation.fastq: {"table": models.qualified("fastq"), "alias": "f"},
        }

        # sample is the primary relation, everything else hangs off it
        self.relationships = {
            SourceRelation.run: "INNER JOIN {table} r ON r.name = s.run",
            SourceRelation.fastq: "INNER JOIN {table} f ON f.sample_id = s.id",
        }

    def lookup(self, name: str) -> Optional[FilterColumn]:
        """Returns the registered column or None for an unknown name"""
        return self.registry.get(name)

    def resolve_column(self, name: str) -> FilterColumn:
        column = self.lookup(name)
        if column is None:
            raise FieldResolutionError(f"Unknown filter column: {name}")
        return column

    def sql_expression(self, column: FilterColumn) -> str:
        alias = self.table_configs[column.source_relation]["alias"]
        return f"{alias}.{column.source_column}"

    def get_join(self, relation: SourceRelation) -> Optional[str]:
        if relation == SourceRelation.sample:
            return None
        if relation not in self.relationships:
            raise FieldResolutionError(f"No relationship defined from sample to {relation.value}")
        return self.relationships[relation].format(table=self.table_configs[relation]["table"])

    def primary_table(self) -> str:
        config = self.table_configs[SourceRelation.sample]
        return f"{config['table']} {config['alias']}"

    def get_available_columns(self) -> List[FilterColumn]:
        return list(self.registry.values())
