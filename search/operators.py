"""
Filter operators and their SQL translations
"""

from typing import Any, Dict, List, Tuple
from enums import ColumnKind, CompareOp


class SearchOperators:
    """Maps filter operators to SQL expressions"""

    # Clause syntax is matched in this order so that `>=`/`<=` never split as a bare `=`
    CLAUSE_SYNTAX: List[Tuple[str, CompareOp]] = [
        (">=", CompareOp.GREATER_EQUAL),
        ("<=", CompareOp.LESS_EQUAL),
        ("=", CompareOp.EQUALS),
    ]

    OPERATORS = {
        CompareOp.WILDCARD_EQUALS: {
            "sql": "LIKE :{param}",
            "type": ColumnKind.text_wildcard,
            "description": "Case-sensitive pattern match, % matches zero or more characters",
        },
        CompareOp.EQUALS: {
            "sql": "= :{param}",
            "type": ColumnKind.numeric_comparison,
            "description": "Equal to",
        },
        CompareOp.GREATER_EQUAL: {
            "sql": ">= :{param}",
            "type": ColumnKind.numeric_comparison,
            "description": "Greater than or equal",
        },
        CompareOp.LESS_EQUAL: {
            "sql": "<= :{param}",
            "type": ColumnKind.numeric_comparison,
            "description": "Less than or equal",
        },
    }

    @classmethod
    def get_operator(cls, operator: CompareOp) -> Dict[str, Any]:
        if operator not in cls.OPERATORS:
            raise ValueError(f"Unsupported operator: {operator}")
        return cls.OPERATORS[operator]

    @classmethod
    def split_clause(cls, clause: str) -> Tuple[str, CompareOp, str]:
        """
        Splits 'column<op>operand' at the first operator found in priority order

        Raises:
            ValueError if the clause contains no operator
        """
        for symbol, operator in cls.CLAUSE_SYNTAX:
            idx = clause.find(symbol)
            if idx != -1:
                return clause[:idx], operator, clause[idx + len(symbol) :]
        raise ValueError(f"No operator in clause: {clause}")

    @classmethod
    def operators_for(cls, kind: ColumnKind) -> List[str]:
        """Clause symbols a user may type for a column of the given kind"""
        if kind == ColumnKind.text_wildcard:
            return ["="]
        return [symbol for symbol, _ in cls.CLAUSE_SYNTAX]

    @classmethod
    def describe(cls, kind: ColumnKind) -> Dict[str, str]:
        """Description of each clause symbol usable on a column of the given kind"""
        if kind == ColumnKind.text_wildcard:
            return {"=": cls.OPERATORS[CompareOp.WILDCARD_EQUALS]["description"]}
        return {symbol: cls.OPERATORS[operator]["description"] for symbol, operator in cls.CLAUSE_SYNTAX}

    @classmethod
    def get_sql_expression(cls, operator: CompareOp, field: str, value: Any, param: str) -> Tuple[str, Dict[str, Any]]:
        """
        Get SQL expression and parameters for an operator

        Numeric comparisons never match rows where the column is NULL.

        Returns:
            Tuple of (sql_expression, parameters_dict)
        """
        op_def = cls.get_operator(operator)
        sql_expr = f"{field} {op_def['sql'].format(param=param)}"

        if op_def["type"] == ColumnKind.numeric_comparison:
            sql_expr = f"{sql_expr} AND {field} IS NOT NULL"

        return sql_expr, {param: value}
