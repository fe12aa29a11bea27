"""Shared validation utilities"""

from typing import Optional

# Longest free-text reason accepted for revision requests and cancellations
MAX_REASON_LENGTH = 500


def normalize_reason(reason: Optional[str]) -> Optional[str]:
    """
    Strip a free-text reason and enforce the length limit.

    Returns None for empty or whitespace-only input.

    Raises:
        ValueError: If the reason is longer than MAX_REASON_LENGTH
    """
    if reason is None:
        return None

    reason = reason.strip()
    if not reason:
        return None

    if len(reason) > MAX_REASON_LENGTH:
        raise ValueError(f"Reason must be at most {MAX_REASON_LENGTH} characters")

    return reason
