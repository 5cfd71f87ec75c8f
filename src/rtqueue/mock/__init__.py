"""
RTQueue Mock Transport Module

Scripted HTTP responses for ``requests`` clients under test.

This module provides:
- Request matching criteria
- Immutable queue builders and FIFO serving queues
- Origin registry and thread-safe interception engine
- Audit log and completion checks
- YAML fixtures
"""

from .transport import MockTransport, MockConfig, new_transport
from .queue import RoundTripQueue, ServingQueue, new_queue
from .registry import TransportRegistry
from .audit import AuditLog, AuditRecord
from .matcher import (
    MatchCriterion,
    RequestPredicate,
    MethodCriterion,
    PathCriterion,
    QueryCriterion,
    HeaderCriterion,
    BodyCriterion,
    PredicateCriterion,
    matches,
    all_match
)
from .generator import (
    ResponseProducer,
    build_response,
    simple_response,
    json_response,
    static_response,
    raising
)
from .errors import (
    MockTransportError,
    OriginNotRegistered,
    MockNotRegistered,
    MatchEvaluationError,
    BodyReadError,
    MalformedProducerConfiguration,
    QueueExhausted
)
from .fixtures import TransportFixture, QueueFixture, ResponseFixture, load_transport

__all__ = [
    # Transport
    'MockTransport',
    'MockConfig',
    'new_transport',

    # Queues
    'RoundTripQueue',
    'ServingQueue',
    'new_queue',
    'TransportRegistry',

    # Audit
    'AuditLog',
    'AuditRecord',

    # Matcher
    'MatchCriterion',
    'RequestPredicate',
    'MethodCriterion',
    'PathCriterion',
    'QueryCriterion',
    'HeaderCriterion',
    'BodyCriterion',
    'PredicateCriterion',
    'matches',
    'all_match',

    # Generator
    'ResponseProducer',
    'build_response',
    'simple_response',
    'json_response',
    'static_response',
    'raising',

    # Errors
    'MockTransportError',
    'OriginNotRegistered',
    'MockNotRegistered',
    'MatchEvaluationError',
    'BodyReadError',
    'MalformedProducerConfiguration',
    'QueueExhausted',

    # Fixtures
    'TransportFixture',
    'QueueFixture',
    'ResponseFixture',
    'load_transport',
]
