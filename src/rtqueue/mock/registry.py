"""
RTQueue Transport Registry

Groups serving queues by origin and picks the queue that answers a request.
"""

import logging
from typing import Dict, Iterator, List, Optional

from requests import PreparedRequest

from ..common import URLParts
from .errors import OriginNotRegistered
from .queue import RoundTripQueue, ServingQueue


logger = logging.getLogger("rtqueue.mock.registry")


class TransportRegistry:
    """
    Mapping of origin -> ordered list of serving queues.

    Not thread-safe; ``MockTransport`` holds its lock around every call.

    Example:
        registry = TransportRegistry()
        registry.register_origin('https://api.example.com',
                                 new_queue().then_respond(200, 'ok'))
        queue = registry.lookup(request)
    """

    def __init__(self):
        self._queues: Dict[str, List[ServingQueue]] = {}

    def register_origin(self, origin: str, *queues: RoundTripQueue) -> List[ServingQueue]:
        """
        Bind an origin to an ordered list of queues, replacing any previous list.

        Args:
            origin: Origin such as ``https://api.example.com:8443``
            queues: Queues in match priority order

        Returns:
            The serving queues now registered for the origin

        Raises:
            ValueError: If ``origin`` has no scheme or host
            TypeError: If a queue is not a RoundTripQueue
        """
        key = URLParts.normalize_origin(origin)
        for queue in queues:
            if not isinstance(queue, RoundTripQueue):
                raise TypeError(f"Expected RoundTripQueue, got {type(queue).__name__}")

        serving = [ServingQueue(queue) for queue in queues]
        if key in self._queues:
            logger.info(f"Replacing {len(self._queues[key])} queues for {key}")
        self._queues[key] = serving
        logger.info(f"Registered {len(serving)} queues for {key}")
        return serving

    def lookup(self, request: PreparedRequest) -> Optional[ServingQueue]:
        """
        Find the queue that should answer ``request``.

        Queues are scanned in registration order. Exhausted queues are
        skipped so a later queue with the same criteria can still serve.

        Args:
            request: Intercepted request

        Returns:
            First non-exhausted queue whose criteria all match, or None

        Raises:
            OriginNotRegistered: If nothing is registered for the origin
            MatchEvaluationError: If a criterion raised
            BodyReadError: If the body could not be read
        """
        origin = URLParts.origin(request.url or '')
        queues = self._queues.get(origin)
        if queues is None:
            raise OriginNotRegistered(origin, request=request)

        for queue in queues:
            if queue.is_exhausted():
                continue
            if queue.matches(request):
                return queue
        return None

    def queues_for(self, origin: str) -> List[ServingQueue]:
        """Registered queues for an origin (empty list if unknown)."""
        return list(self._queues.get(URLParts.normalize_origin(origin), []))

    def origins(self) -> List[str]:
        return list(self._queues)

    def all_queues(self) -> Iterator[ServingQueue]:
        for queues in self._queues.values():
            yield from queues

    def remaining(self) -> int:
        """Total number of producers not yet consumed, across all origins."""
        return sum(len(queue) for queue in self.all_queues())
