"""Retry policy for part uploads.

Part uploads are retried immediately, without backoff. Any failure of a
part upload is retried, whatever the error, until either limit is hit:

- the per-part limit (``max_part_retries``)
- the session-wide budget shared by all parts (``max_total_retries``)
"""

from typing import Optional


class RetryBudget:
    """Counts retries across all parts of one upload session.

    Args:
        max_part_retries: Retries allowed for any single part.
        max_total_retries: Retries allowed for the whole session, or None
                           for no session-wide cap.
    """

    def __init__(self, max_part_retries: int, max_total_retries: Optional[int] = None):
        self.max_part_retries = max_part_retries
        self.max_total_retries = max_total_retries
        self.used = 0

    @property
    def exhausted(self) -> bool:
        if self.max_total_retries is None:
            return False
        return self.used >= self.max_total_retries

    def allows(self, part_retries: int) -> bool:
        """Whether a part that has been retried ``part_retries`` times may retry."""
        if part_retries >= self.max_part_retries:
            return False
        return not self.exhausted

    def consume(self) -> None:
        self.used += 1
