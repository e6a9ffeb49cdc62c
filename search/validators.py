"""
Additional validators for sample search requests
"""

from typing import Optional, Tuple
from enums import WarningKind
from .parser import FilterWarning

ALLOWED_LIMITS = (50, 100, 200, 500, 1000)
DEFAULT_LIMIT = 100


class SearchValidator:
    """Validation of request values that are not part of the filter string"""

    @staticmethod
    def validate_limit(limit: Optional[int]) -> Tuple[int, Optional[FilterWarning]]:
        """
        Returns the effective row limit and a warning if the requested one was replaced.

        A missing limit uses the default; any other value outside ALLOWED_LIMITS is
        clamped to the nearest allowed value, ties going to the smaller one.
        """
        if limit is None:
            return DEFAULT_LIMIT, None
        if limit in ALLOWED_LIMITS:
            return limit, None

        effective = min(ALLOWED_LIMITS, key=lambda allowed: (abs(allowed - limit), allowed))
        warning = FilterWarning(
            WarningKind.invalid_limit,
            f"invalid limit: {limit}, using {effective}",
        )
        return effective, warning
