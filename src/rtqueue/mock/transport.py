"""
RTQueue Mock Transport

A ``requests`` transport adapter that answers requests from pre-scripted
queues instead of the network.

Features:
- Per-origin queues selected by declaration order and match criteria
- Each scripted response consumed exactly once, safe under many threads
- Audit log of every intercepted request for post-hoc assertions
- Completion check: every response consumed and no stray calls
"""

import logging
import threading
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass

import requests
from requests import PreparedRequest, Response
from requests.adapters import HTTPAdapter

from .audit import AuditLog, AuditRecord
from .errors import MockNotRegistered, MockTransportError, OriginNotRegistered
from .queue import RoundTripQueue, ServingQueue
from .registry import TransportRegistry


_LOG_LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'critical': logging.CRITICAL,
}


def _resolve_level(name: str) -> int:
    level = _LOG_LEVELS.get(str(name).lower())
    if level is None:
        raise ValueError(f"Unknown log_level {name!r}, expected one of {', '.join(_LOG_LEVELS)}")
    return level


@dataclass
class MockConfig:
    """Configuration for mock transport behavior."""

    # Record an unmatched audit entry when the origin itself is unknown
    audit_unregistered_origin: bool = False

    # Logging. The level is set on the process-wide "rtqueue.mock" logger,
    # so the most recently built transport decides it for all of them.
    log_level: str = "info"
    verbose_mode: bool = False  # Log every interception at INFO instead of DEBUG

    # URL prefixes session() mounts the transport on
    mount_prefixes: Tuple[str, ...] = ("http://", "https://")


class MockTransport(HTTPAdapter):
    """
    Transport adapter serving scripted responses to a ``requests`` client.

    Mount it on a session (or use :meth:`session`) and every request made
    through that session is matched against the registered queues.

    Example:
        transport = new_transport(
            'https://api.example.com',
            new_queue().get('/users').then_respond_json(200, {'count': 1}),
        )
        session = transport.session()

        assert session.get('https://api.example.com/users').json() == {'count': 1}
        assert transport.completed()
    """

    def __init__(self, config: Optional[MockConfig] = None):
        """
        Initialize mock transport.

        Args:
            config: Optional MockConfig for transport behavior

        Raises:
            ValueError: If ``config.log_level`` is not a known level name
        """
        super().__init__(max_retries=0)
        self.config = config or MockConfig()
        self.registry = TransportRegistry()
        self.audit_log = AuditLog()

        # Guards registry queues and the audit log
        self._lock = threading.Lock()

        self.logger = logging.getLogger("rtqueue.mock")
        self.logger.setLevel(_resolve_level(self.config.log_level))

    # Setup

    def register_origin(self, origin: str, *queues: RoundTripQueue) -> List[ServingQueue]:
        """
        Bind ``origin`` to an ordered list of queues, replacing any previous list.

        Args:
            origin: Origin such as ``https://api.example.com``
            queues: Queues in match priority order

        Returns:
            The serving queues created for the origin
        """
        with self._lock:
            return self.registry.register_origin(origin, *queues)

    def session(self) -> requests.Session:
        """Create a ``requests.Session`` with this transport mounted."""
        session = requests.Session()
        for prefix in self.config.mount_prefixes:
            session.mount(prefix, self)
        return session

    # Serving

    def send(
        self,
        request: PreparedRequest,
        stream: bool = False,
        timeout: Any = None,
        verify: Any = True,
        cert: Any = None,
        proxies: Optional[Dict[str, str]] = None
    ) -> Response:
        """Round-tripper entry point called by ``requests.Session``.

        Connection options (timeout, TLS, proxies) have no meaning here and
        are ignored.
        """
        response = self.intercept(request)
        if isinstance(response, Response) and getattr(response, 'connection', None) is None:
            response.connection = self
        return response

    def intercept(self, request: PreparedRequest) -> Response:
        """
        Serve one request from the queues.

        Lookup, pop and audit happen under one lock, so concurrent callers
        never share a producer and audit numbering follows lock order. The
        producer itself runs after the lock is released.

        Args:
            request: Intercepted request

        Returns:
            Response built by the matched producer

        Raises:
            OriginNotRegistered: If no queues exist for the request origin
            MockNotRegistered: If no non-exhausted queue matched
            MatchEvaluationError: If a criterion raised
            BodyReadError: If the request body could not be read
        """
        with self._lock:
            try:
                queue = self.registry.lookup(request)
            except OriginNotRegistered as e:
                if self.config.audit_unregistered_origin:
                    self.audit_log.append(request, matched=False)
                self.logger.warning(f"Origin not registered: {e.origin} ({request.method} {request.url})")
                raise
            except MockTransportError as e:
                self.audit_log.append(request, matched=False)
                self.logger.warning(f"Matching failed for {request.method} {request.url}: {e}")
                raise

            if queue is None:
                record = self.audit_log.append(request, matched=False)
                self.logger.warning(f"No mock registered for {record.method} {record.url}")
                raise MockNotRegistered(request)

            # lookup() never returns an exhausted queue
            producer = queue.dequeue_head()
            record = self.audit_log.append(request, matched=True)

        self._log_match(record)
        return producer(request)

    def _log_match(self, record: AuditRecord) -> None:
        level = logging.INFO if self.config.verbose_mode else logging.DEBUG
        self.logger.log(level, f"Matched #{record.sequence}: {record.method} {record.url}")

    # Inspection

    def completed(self) -> bool:
        """True iff every queue is exhausted and no request went unmatched."""
        with self._lock:
            return self.audit_log.is_drained(self.registry.all_queues())

    def assert_completed(self) -> None:
        """
        Raise AssertionError with the audit trace unless :meth:`completed`.

        Example:
            transport.assert_completed()
        """
        with self._lock:
            if self.audit_log.is_drained(self.registry.all_queues()):
                return
            remaining = self.registry.remaining()
            unmatched = len(self.audit_log.unmatched())
            trace = self.audit_log.render()
        raise AssertionError(
            f"Mock transport not completed: {remaining} responses not consumed, "
            f"{unmatched} unmatched requests\n{trace}"
        )

    def unmatched_requests(self) -> List[PreparedRequest]:
        with self._lock:
            return [record.request for record in self.audit_log.unmatched()]

    def audit_records(self) -> List[AuditRecord]:
        with self._lock:
            return self.audit_log.all()

    def audit_log_string(self) -> str:
        """One line per intercepted request: ``"<n>: <METHOD> <url>[ (not matched)]"``."""
        with self._lock:
            return self.audit_log.render()

    def reset_audit_log(self) -> None:
        with self._lock:
            self.audit_log.reset()

    def stats(self) -> Dict[str, Any]:
        """Audit counts plus the number of responses still queued."""
        with self._lock:
            stats = self.audit_log.stats()
            stats['remaining_responses'] = self.registry.remaining()
            stats['origins'] = self.registry.origins()
            return stats


def new_transport(
    origin: Optional[str] = None,
    *queues: RoundTripQueue,
    config: Optional[MockConfig] = None
) -> MockTransport:
    """
    Create a transport, optionally registering one origin right away.

    Args:
        origin: Origin to register ``queues`` under (None for an empty transport)
        queues: Queues for ``origin`` in match priority order
        config: Optional MockConfig

    Returns:
        MockTransport

    Example:
        transport = new_transport('http://example.com', new_queue().then_respond(200))
        transport.register_origin('http://example2.com', new_queue().then_respond(204))
    """
    transport = MockTransport(config=config)
    if origin is not None:
        transport.register_origin(origin, *queues)
    elif queues:
        raise ValueError("Queues given without an origin")
    return transport
