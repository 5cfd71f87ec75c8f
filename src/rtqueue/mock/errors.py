"""
RTQueue Errors

Exceptions raised by the mock transport. Transport failures subclass
``requests.exceptions.RequestException`` so they surface through
``Session.send`` the same way a real connection error would.
"""

from typing import Optional

from requests import PreparedRequest
from requests.exceptions import RequestException


class MockTransportError(RequestException):
    """Base class for failures raised while serving a request."""


class OriginNotRegistered(MockTransportError):
    """The request's origin has no queues registered at all."""

    def __init__(self, origin: str, request: Optional[PreparedRequest] = None):
        super().__init__(f"origin is not registered: {origin}", request=request)
        self.origin = origin


class MockNotRegistered(MockTransportError):
    """The origin is known but no non-exhausted queue matched the request."""

    def __init__(self, request: PreparedRequest):
        super().__init__(f"mock is not registered: {request.method} {request.url}", request=request)


class MatchEvaluationError(MockTransportError):
    """A match criterion raised while being evaluated."""


class BodyReadError(MockTransportError):
    """The request body could not be read for matching."""


class MalformedProducerConfiguration(ValueError):
    """A response producer was configured with invalid data.

    Raised while building queues, never while serving.
    """


class QueueExhausted(IndexError):
    """``dequeue_head()`` was called on an empty queue."""
