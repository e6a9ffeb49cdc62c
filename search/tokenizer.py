from typing import List, Optional


def tokenize(filter_str: Optional[str]) -> List[str]:
    """
    Splits a raw filter string into whitespace-separated clauses.

    There is no quoting, so a value containing whitespace cannot be expressed.
    """
    if not filter_str:
        return []
    return filter_str.split()
