"""
Input validation utilities for API payloads.
"""

import re
from typing import Any, Dict, Iterable, List


def validate_email(email: str) -> bool:
    """
    Validate email address format.

    Args:
        email: Email address string

    Returns:
        True if valid format, False otherwise
    """
    if not email or not isinstance(email, str):
        return False

    # Basic email regex (RFC 5322 simplified)
    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def missing_fields(payload: Dict[str, Any], fields: Iterable[str]) -> List[str]:
    """Return the names of required fields that are absent or empty."""
    return [name for name in fields if not payload.get(name)]

