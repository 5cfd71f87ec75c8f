"""
RTQueue

Programmable transport double for ``requests``: intercepts outgoing HTTP
requests and answers them from pre-scripted, per-pattern response queues.
"""

from .mock import (
    MockTransport,
    MockConfig,
    new_transport,
    RoundTripQueue,
    new_queue,
    AuditRecord,
    MockTransportError,
    OriginNotRegistered,
    MockNotRegistered,
    MatchEvaluationError,
    BodyReadError,
    MalformedProducerConfiguration,
    load_transport
)

__all__ = [
    'MockTransport',
    'MockConfig',
    'new_transport',
    'RoundTripQueue',
    'new_queue',
    'AuditRecord',
    'MockTransportError',
    'OriginNotRegistered',
    'MockNotRegistered',
    'MatchEvaluationError',
    'BodyReadError',
    'MalformedProducerConfiguration',
    'load_transport',
]

__version__ = '1.0.0'
