"""
Utility functions for search functionality
"""

from typing import Any, Dict, List


def extract_unique_joins(joins_list: List[str]) -> List[str]:
    """Extract unique JOIN clauses, preserving order"""
    seen = set()
    unique_joins = []

    for join in joins_list:
        # Normalize whitespace for comparison
        normalized = " ".join(join.split())
        if normalized not in seen:
            seen.add(normalized)
            unique_joins.append(join)

    return unique_joins


def format_sql_query(sql: str) -> str:
    """Format SQL query for better readability"""
    formatted = sql.strip()

    # Add line breaks before major clauses
    clauses = ["FROM", "INNER JOIN", "WHERE", "ORDER BY", "LIMIT"]
    for clause in clauses:
        formatted = formatted.replace(f" {clause} ", f"\n{clause} ")

    return formatted


def row_to_dict(columns: List[str], row: Any) -> Dict[str, Any]:
    return dict(zip(columns, row))
