"""
RTQueue Round-Trip Queues

A queue pairs one request pattern (its match criteria) with an ordered
sequence of response producers. Successive matching requests consume the
producers in order, so a single pattern can answer 200, then 429, then 200.

Two types split setup from serving:

- ``RoundTripQueue``: immutable builder value. Every ``with_*`` / ``then_*``
  call returns a new queue, so partially built queues can be shared or
  reused as templates without aliasing.
- ``ServingQueue``: mutable FIFO created from a ``RoundTripQueue`` when it is
  registered on a transport. Popping its head is the only mutation while
  serving.

Example:
    queue = (
        new_queue()
        .get('/users')
        .with_header('Authorization', 'Bearer t')
        .then_respond_json(200, {'count': 1})
        .then_respond(429, 'slow down')
    )
"""

from collections import deque
from dataclasses import dataclass, replace
from typing import Callable, Deque, Mapping, Optional, Tuple, Union

from requests import PreparedRequest, Response

from .errors import QueueExhausted
from .generator import (
    Body,
    ResponseProducer,
    json_response,
    raising,
    simple_response,
    static_response
)
from .matcher import (
    HeaderCriterion,
    MatchCriterion,
    MethodCriterion,
    PathCriterion,
    PredicateCriterion,
    QueryCriterion,
    RequestPredicate,
    all_match,
    body_criterion
)


@dataclass(frozen=True)
class RoundTripQueue:
    """Immutable description of a queue: criteria plus response producers."""

    criteria: Tuple[MatchCriterion, ...] = ()
    producers: Tuple[ResponseProducer, ...] = ()

    # Criteria

    def with_criteria(self, *criteria: MatchCriterion) -> 'RoundTripQueue':
        """Return a copy with ``criteria`` appended to the match set."""
        return replace(self, criteria=self.criteria + tuple(criteria))

    def with_method(self, method: str) -> 'RoundTripQueue':
        return self.with_criteria(MethodCriterion(method.upper()))

    def with_path(self, path: str) -> 'RoundTripQueue':
        return self.with_criteria(PathCriterion(path))

    def with_header(self, name: str, value: str) -> 'RoundTripQueue':
        return self.with_criteria(HeaderCriterion(name, value))

    def with_query(self, key: str, value: str) -> 'RoundTripQueue':
        return self.with_criteria(QueryCriterion(key, value))

    def with_body(self, body: Body) -> 'RoundTripQueue':
        return self.with_criteria(body_criterion(body))

    def with_predicate(
        self,
        predicate: Union[RequestPredicate, Callable[[PreparedRequest], bool]]
    ) -> 'RoundTripQueue':
        """
        Return a copy with a caller-supplied predicate appended.

        Predicates run while the transport holds its lock, which is not
        re-entrant. A predicate must not call back into the transport
        (``stats()``, ``audit_records()``, ``register_origin()`` and so on)
        or the request deadlocks. Producers run after the lock is released
        and have no such restriction.

        Args:
            predicate: Object with ``matches(request) -> bool`` or a plain
                callable taking the request

        Returns:
            New RoundTripQueue

        Raises:
            TypeError: If ``predicate`` is neither callable nor has ``matches()``
        """
        return self.with_criteria(PredicateCriterion(predicate))

    def get(self, path: str) -> 'RoundTripQueue':
        return self.with_method('GET').with_path(path)

    def post(self, path: str) -> 'RoundTripQueue':
        return self.with_method('POST').with_path(path)

    def put(self, path: str) -> 'RoundTripQueue':
        return self.with_method('PUT').with_path(path)

    def patch(self, path: str) -> 'RoundTripQueue':
        return self.with_method('PATCH').with_path(path)

    def delete(self, path: str) -> 'RoundTripQueue':
        return self.with_method('DELETE').with_path(path)

    # Responses

    def then_respond_with(self, producer: ResponseProducer) -> 'RoundTripQueue':
        """Return a copy with ``producer`` appended to the response sequence."""
        if not callable(producer):
            raise TypeError(f"Producer must be callable, got {type(producer).__name__}")
        return replace(self, producers=self.producers + (producer,))

    def then_respond(
        self,
        status: int,
        body: Body = '',
        headers: Optional[Mapping[str, str]] = None
    ) -> 'RoundTripQueue':
        return self.then_respond_with(simple_response(status, body, headers))

    def then_respond_json(
        self,
        status: int,
        value,
        headers: Optional[Mapping[str, str]] = None
    ) -> 'RoundTripQueue':
        """Append a JSON response; unserializable values fail right here."""
        return self.then_respond_with(json_response(status, value, headers))

    def then_return(self, response: Response) -> 'RoundTripQueue':
        """
        Append a prebuilt response, returned as the same object when served.

        The response is not copied. Its ``request`` and ``url`` are filled
        in on the first serve only. A template registered on several origins
        hands every one of them this object, whose ``request`` keeps pointing
        at whichever request was served first. Use ``then_respond`` or a
        producer via ``then_respond_with`` when each serve needs its own
        response.
        """
        return self.then_respond_with(static_response(response))

    def then_raise(self, error: BaseException) -> 'RoundTripQueue':
        return self.then_respond_with(raising(error))


def new_queue() -> RoundTripQueue:
    """Start an empty queue: no criteria (matches anything) and no responses."""
    return RoundTripQueue()


class ServingQueue:
    """Mutable FIFO of producers, gated by fixed match criteria.

    Not thread-safe by itself; the transport serializes access.
    """

    def __init__(self, template: RoundTripQueue):
        self.criteria: Tuple[MatchCriterion, ...] = template.criteria
        self._producers: Deque[ResponseProducer] = deque(template.producers)

    def enqueue(self, producer: ResponseProducer) -> None:
        self._producers.append(producer)

    def dequeue_head(self) -> ResponseProducer:
        """
        Remove and return the next producer.

        Returns:
            The producer at the head of the FIFO

        Raises:
            QueueExhausted: If the FIFO is empty
        """
        if not self._producers:
            raise QueueExhausted("dequeue_head() on an exhausted queue")
        return self._producers.popleft()

    def is_exhausted(self) -> bool:
        return not self._producers

    def matches(self, request: PreparedRequest) -> bool:
        return all_match(self.criteria, request)

    def __len__(self) -> int:
        return len(self._producers)

    def __repr__(self) -> str:
        return f"ServingQueue(criteria={list(self.criteria)!r}, remaining={len(self._producers)})"
