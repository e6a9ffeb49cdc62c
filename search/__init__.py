"""
Sample filter search for the Vault

This module parses the free-text filter language typed into the sample search box
(e.g. `run=21%01_% project=MS_ALL cells>=15000`) and compiles it into a parameterized
query against the run/sample/fastq schema.
"""

from .engine import CompiledSearch, SearchEngine, SearchResult
from .field_resolver import COLUMN_REGISTRY, FieldResolutionError, FieldResolver, FilterColumn
from .operators import SearchOperators
from .parser import ClauseParser, ClauseResult, FilterWarning, ParseResult, parse_filter
from .query_builder import QueryBuildError, QueryBuilder
from .store import SampleStore, SqlSampleStore, StoreError
from .tokenizer import tokenize
from .validators import ALLOWED_LIMITS, DEFAULT_LIMIT, SearchValidator

__all__ = [
    "SearchEngine",
    "SearchResult",
    "CompiledSearch",
    "COLUMN_REGISTRY",
    "FieldResolver",
    "FieldResolutionError",
    "FilterColumn",
    "SearchOperators",
    "ClauseParser",
    "ClauseResult",
    "FilterWarning",
    "ParseResult",
    "parse_filter",
    "QueryBuilder",
    "QueryBuildError",
    "SampleStore",
    "SqlSampleStore",
    "StoreError",
    "tokenize",
    "ALLOWED_LIMITS",
    "DEFAULT_LIMIT",
    "SearchValidator",
]
