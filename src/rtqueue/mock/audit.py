"""
RTQueue Audit Log

Append-only record of every intercepted request and whether it matched.
Used for post-hoc assertions: which calls were made, in what order, and
whether every expectation was consumed.
"""

from typing import Any, Dict, Iterable, List
from dataclasses import dataclass, field

from requests import PreparedRequest


@dataclass(frozen=True)
class AuditRecord:
    """One intercepted request."""

    sequence: int
    method: str
    url: str
    matched: bool
    request: PreparedRequest = field(repr=False, compare=False)

    def __str__(self) -> str:
        line = f"{self.method} {self.url}"
        if not self.matched:
            line += " (not matched)"
        return line

    def format(self) -> str:
        """Render as ``"<n>: <METHOD> <url>[ (not matched)]"``."""
        return f"{self.sequence}: {self}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'sequence': self.sequence,
            'method': self.method,
            'url': self.url,
            'matched': self.matched
        }


class AuditLog:
    """
    Ordered audit records with 1-based sequence numbers.

    Sequence numbers follow append order. The transport appends while
    holding its lock, so they follow lock acquisition order rather than the
    order requests were built in.

    Not thread-safe by itself.
    """

    def __init__(self):
        self._records: List[AuditRecord] = []

    def append(self, request: PreparedRequest, matched: bool) -> AuditRecord:
        """
        Record one intercepted request.

        Args:
            request: The intercepted request
            matched: Whether a queue answered it

        Returns:
            The new record
        """
        record = AuditRecord(
            sequence=len(self._records) + 1,
            method=request.method or '',
            url=request.url or '',
            matched=matched,
            request=request
        )
        self._records.append(record)
        return record

    def all(self) -> List[AuditRecord]:
        return list(self._records)

    def unmatched(self) -> List[AuditRecord]:
        return [record for record in self._records if not record.matched]

    def is_drained(self, queues: Iterable[Any]) -> bool:
        """
        True iff every queue is exhausted and no request went unmatched.

        Args:
            queues: Serving queues to check (anything with ``is_exhausted()``)
        """
        if self.unmatched():
            return False
        return all(queue.is_exhausted() for queue in queues)

    def reset(self) -> None:
        """Drop all records; numbering restarts at 1."""
        self._records.clear()

    def render(self) -> str:
        return "\n".join(record.format() for record in self._records)

    def stats(self) -> Dict[str, Any]:
        """Summary counts in the shape of mock-server metrics."""
        total = len(self._records)
        unmatched = len(self.unmatched())
        matched = total - unmatched
        return {
            'total_requests': total,
            'matched_requests': matched,
            'unmatched_requests': unmatched,
            'match_rate': round((matched / total * 100) if total > 0 else 0, 2)
        }

    def __len__(self) -> int:
        return len(self._records)
