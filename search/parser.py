import re
from dataclasses import dataclass, field
from typing import List, Optional
from enums import CompareOp, WarningKind
from models import NumericPredicate, Predicate, WildcardPredicate
from .field_resolver import FieldResolver
from .operators import SearchOperators
from .tokenizer import tokenize

INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")

# Operands must fit the BIGINT columns they are compared against
INTEGER_MIN = -(2**63)
INTEGER_MAX = 2**63 - 1


@dataclass(frozen=True)
class FilterWarning:
    kind: WarningKind
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ClauseResult:
    """Outcome of a single clause: a predicate, a warning, never both."""

    predicate: Optional[Predicate] = None
    warning: Optional[FilterWarning] = None


@dataclass
class ParseResult:
    predicates: List[Predicate] = field(default_factory=list)
    diagnostics: List[FilterWarning] = field(default_factory=list)

    @property
    def warnings(self) -> List[str]:
        return [str(w) for w in self.diagnostics]


def _skip(kind: WarningKind, message: str) -> ClauseResult:
    return ClauseResult(warning=FilterWarning(kind, message))


class ClauseParser:
    """Parses filter clauses like 'run=21%01_%' or 'cells>=15000' into predicates."""

    def __init__(self, field_resolver: Optional[FieldResolver] = None):
        self.field_resolver = field_resolver or FieldResolver()

    def parse(self, filter_str: Optional[str]) -> ParseResult:
        return self.merge([self.parse_clause(token) for token in tokenize(filter_str)])

    @staticmethod
    def merge(results: List[ClauseResult]) -> ParseResult:
        merged = ParseResult()
        for result in results:
            if result.predicate is not None:
                merged.predicates.append(result.predicate)
            if result.warning is not None:
                merged.diagnostics.append(result.warning)
        return merged

    def parse_clause(self, token: str) -> ClauseResult:
        try:
            column_name, operator, operand = SearchOperators.split_clause(token)
        except ValueError:
            return _skip(WarningKind.malformed_clause, f"malformed clause: {token}")

        column = self.field_resolver.lookup(column_name)
        if column is None:
            return _skip(WarningKind.unknown_column, f"unknown column: {column_name}")

        if not column.is_numeric:
            if operator != CompareOp.EQUALS:
                return _skip(
                    WarningKind.unsupported_operator,
                    f"operator not supported for text column: {column_name}",
                )
            return ClauseResult(predicate=WildcardPredicate(column=column.name, value=operand))

        if not INTEGER_PATTERN.fullmatch(operand) or not INTEGER_MIN <= int(operand) <= INTEGER_MAX:
            return _skip(WarningKind.not_a_number, f"not a number: {operand}")
        return ClauseResult(predicate=NumericPredicate(column=column.name, operator=operator, value=int(operand)))


def parse_filter(filter_str: Optional[str]) -> ParseResult:
    return ClauseParser().parse(filter_str)
