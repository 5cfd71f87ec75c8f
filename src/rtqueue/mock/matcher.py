"""
RTQueue Request Matcher

Match criteria that decide whether an intercepted request belongs to a queue.

Features:
- Method, path, query parameter, header and body equality
- Caller-supplied predicates through the same interface
- Composite AND matching with short-circuit evaluation
- Body buffering so reading the body never consumes it
"""

import logging
from typing import Callable, Iterable, Protocol, Union, runtime_checkable
from dataclasses import dataclass

from requests import PreparedRequest

from ..common import buffer_body, header_value, to_body_bytes, URLParts
from .errors import BodyReadError, MatchEvaluationError, MockTransportError


logger = logging.getLogger("rtqueue.mock.matcher")


@runtime_checkable
class RequestPredicate(Protocol):
    """Anything that can answer whether a request matches.

    Implementations may raise; the error is reported to the caller of the
    transport as a :class:`MatchEvaluationError`.
    """

    def matches(self, request: PreparedRequest) -> bool:
        ...


# Built-in criteria and caller predicates share one interface.
MatchCriterion = RequestPredicate


def _read_body(request: PreparedRequest) -> bytes:
    try:
        return buffer_body(request)
    except (OSError, TypeError, ValueError) as e:
        raise BodyReadError(f"failed to read request body: {e}", request=request) from e


@dataclass(frozen=True)
class MethodCriterion:
    """Request method equals ``method`` (case-insensitive)."""

    method: str

    def matches(self, request: PreparedRequest) -> bool:
        return (request.method or '').upper() == self.method.upper()


@dataclass(frozen=True)
class PathCriterion:
    """URL path equals ``path`` exactly.

    No normalization: ``/users`` and ``/users/`` are different paths.
    """

    path: str

    def matches(self, request: PreparedRequest) -> bool:
        return URLParts.path(request.url or '') == self.path


@dataclass(frozen=True)
class QueryCriterion:
    """First value of query parameter ``key`` equals ``value``.

    An absent parameter reads as "", so ``QueryCriterion('q', '')`` also
    matches requests without ``q``.
    """

    key: str
    value: str

    def matches(self, request: PreparedRequest) -> bool:
        return URLParts.first_query_value(request.url or '', self.key) == self.value


@dataclass(frozen=True)
class HeaderCriterion:
    """Header ``name`` equals ``value``; absent headers read as ""."""

    name: str
    value: str

    def matches(self, request: PreparedRequest) -> bool:
        return header_value(request, self.name) == self.value


@dataclass(frozen=True)
class BodyCriterion:
    """Full request body equals ``body`` byte for byte."""

    body: bytes

    def matches(self, request: PreparedRequest) -> bool:
        return _read_body(request) == self.body


@dataclass(frozen=True)
class PredicateCriterion:
    """Delegates to a caller-supplied predicate.

    The body is buffered first, so the predicate can read
    ``request.body`` freely without consuming a stream.
    """

    predicate: Union[RequestPredicate, Callable[[PreparedRequest], bool]]

    def __post_init__(self):
        if not isinstance(self.predicate, RequestPredicate) and not callable(self.predicate):
            raise TypeError(
                f"Predicate must be callable or have matches(), got {type(self.predicate).__name__}"
            )

    def matches(self, request: PreparedRequest) -> bool:
        _read_body(request)
        if isinstance(self.predicate, RequestPredicate):
            return bool(self.predicate.matches(request))
        return bool(self.predicate(request))


def body_criterion(body: Union[str, bytes]) -> BodyCriterion:
    """
    Build a body criterion from str or bytes.

    Args:
        body: Expected body; str is UTF-8 encoded

    Returns:
        BodyCriterion
    """
    return BodyCriterion(to_body_bytes(body))


def matches(criterion: MatchCriterion, request: PreparedRequest) -> bool:
    """
    Evaluate a single criterion against a request.

    Args:
        criterion: Criterion to evaluate
        request: Intercepted request

    Returns:
        True if the request satisfies the criterion

    Raises:
        BodyReadError: If the body could not be read
        MatchEvaluationError: If the criterion raised anything else
    """
    try:
        return bool(criterion.matches(request))
    except MockTransportError:
        raise
    except Exception as e:
        raise MatchEvaluationError(
            f"match criterion {criterion!r} failed: {e}", request=request
        ) from e


def all_match(criteria: Iterable[MatchCriterion], request: PreparedRequest) -> bool:
    """
    Composite match: logical AND of all criteria in declaration order.

    Evaluation stops at the first criterion that does not match. An empty
    set of criteria matches every request.

    Args:
        criteria: Criteria to evaluate
        request: Intercepted request

    Returns:
        True if every criterion matches
    """
    for criterion in criteria:
        if not matches(criterion, request):
            logger.debug(f"{request.method} {request.url} rejected by {criterion!r}")
            return False
    return True
