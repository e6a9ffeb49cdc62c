"""
Query builder for the sample filter language
Builds a parameterized SQL query from parsed predicates
"""

from typing import Any, Dict, List, Optional
import models
from enums import SourceRelation
from .field_resolver import FieldResolutionError, FieldResolver
from .operators import SearchOperators
from .utils import extract_unique_joins
from .validators import SearchValidator

# Output columns of a SampleRow, in order
OUTPUT_FIELDS = [
    ("s.id", "id"),
    ("r.name", "run"),
    ("s.name", "name"),
    ("s.dna_nr", "dna_nr"),
    ("s.project", "project"),
    ("s.lims_id", "lims_id"),
    ("s.primer_set", "primer_set"),
    ("s.cells", "cells"),
]

ORDER_BY = ["r.name", "s.name", "s.id"]


class QueryBuildError(Exception):
    """Custom exception for query building errors"""

    pass


class QueryBuilder:
    """Builds dynamic SQL queries from filter predicates"""

    def __init__(self, field_resolver: Optional[FieldResolver] = None):
        self.field_resolver = field_resolver or FieldResolver()
        self.operators = SearchOperators()

    def build_query(self, predicates: List[models.Predicate], limit: int) -> models.QuerySpec:
        """
        Builds the complete SQL query for a list of predicates

        SELECT ...
        FROM sample s INNER JOIN run r ... [INNER JOIN fastq f ...]
        WHERE <predicate> AND <predicate> ...
        ORDER BY run name, sample name
        LIMIT :limit

        The limit must already be one of the allowed values.
        """
        effective_limit, warning = SearchValidator.validate_limit(limit)
        if warning is not None:
            raise QueryBuildError(f"Limit not allowed: {limit}")

        joins = [self.field_resolver.get_join(SourceRelation.run)]
        conditions = []
        query_params: Dict[str, Any] = {}

        for idx, predicate in enumerate(predicates):
            cond_info = self.build_condition(predicate, f"param_{idx}")
            conditions.append(cond_info["sql"])
            query_params.update(cond_info["params"])
            joins.extend(cond_info["joins"])

        joins = extract_unique_joins(joins)
        # a sample with several matching files must still come back once
        distinct = "DISTINCT " if len(joins) > 1 else ""

        select_clause = ", ".join(f"{expr} AS {alias}" for expr, alias in OUTPUT_FIELDS)
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        query_params["limit"] = effective_limit

        complete_sql = f"""
        SELECT {distinct}{select_clause}
        FROM {self.field_resolver.primary_table()}
        {" ".join(joins)}
        {where_clause}
        ORDER BY {", ".join(ORDER_BY)}
        LIMIT :limit
        """

        return models.QuerySpec(
            sql=" ".join(complete_sql.split()),
            params=query_params,
            predicates=list(predicates),
            limit=effective_limit,
            joins=joins,
        )

    def build_condition(self, predicate: models.Predicate, param: str) -> Dict[str, Any]:
        """
        Builds WHERE clause for a single predicate

        Returns:
            Dict with: {'sql': str, 'params': Dict[str, Any], 'joins': List[str]}
        """
        try:
            column = self.field_resolver.resolve_column(predicate.column)
            op_type = self.operators.get_operator(predicate.operator)["type"]
            if predicate.kind != column.kind.value or op_type != column.kind:
                raise QueryBuildError(f"Operator {predicate.operator.value} cannot be applied to column {column.name}")
            field_sql = self.field_resolver.sql_expression(column)
            join = self.field_resolver.get_join(column.source_relation)
            sql_expr, params = self.operators.get_sql_expression(predicate.operator, field_sql, predicate.value, param)
        except FieldResolutionError as e:
            raise QueryBuildError(f"Field resolution error: {str(e)}")
        except ValueError as e:
            raise QueryBuildError(f"Condition validation error: {str(e)}")

        return {
            "sql": f"({sql_expr})",
            "params": params,
            "joins": [join] if join else [],
        }
