"""
Main search engine for the sample filter language
Orchestrates parsing, query building and execution
"""

from dataclasses import dataclass, field
from typing import List, Optional
import models
from logging_setup import logger
from .field_resolver import FieldResolver
from .parser import ClauseParser
from .query_builder import QueryBuilder
from .store import SampleStore
from .utils import format_sql_query
from .validators import SearchValidator


@dataclass
class SearchResult:
    rows: List[models.SampleRow]
    count: int
    warnings: List[str] = field(default_factory=list)
    limit: int = 0

    @property
    def limit_reached(self) -> bool:
        """True when the row cap was hit; more samples may match."""
        return self.count == self.limit


@dataclass
class CompiledSearch:
    query: models.QuerySpec
    warnings: List[str] = field(default_factory=list)


class SearchEngine:
    """Main search orchestration"""

    def __init__(self, store: SampleStore, field_resolver: Optional[FieldResolver] = None):
        self.store = store
        self.field_resolver = field_resolver or FieldResolver()
        self.parser = ClauseParser(self.field_resolver)
        self.query_builder = QueryBuilder(self.field_resolver)

    def compile(self, filter_str: Optional[str], limit: Optional[int] = None) -> CompiledSearch:
        """
        Parses the filter string and builds the query without executing it

        Bad clauses and an unsupported limit end up in the warnings, never as errors.
        """
        parsed = self.parser.parse(filter_str)
        warnings = parsed.warnings

        effective_limit, limit_warning = SearchValidator.validate_limit(limit)
        if limit_warning is not None:
            warnings.append(str(limit_warning))

        query = self.query_builder.build_query(parsed.predicates, effective_limit)
        logger.debug(f"Q: {format_sql_query(query.sql)} {query.params}")
        return CompiledSearch(query=query, warnings=warnings)

    def search(self, filter_str: Optional[str], limit: Optional[int] = None) -> SearchResult:
        """
        Executes a filter search

        Raises:
            StoreError if the store fails; it is not retried
        """
        compiled = self.compile(filter_str, limit)
        rows = self.store.run_query(compiled.query)

        result = SearchResult(
            rows=rows,
            count=len(rows),
            warnings=compiled.warnings,
            limit=compiled.query.limit,
        )
        logger.info(f"Filter '{filter_str or ''}' returned {result.count} samples, {len(result.warnings)} warnings")
        return result
