"""
RTQueue YAML Fixtures

Declarative transport setup: describe origins, queues and scripted responses
in YAML (or a plain dict) and build a ready ``MockTransport`` from it.

Example fixture:

    name: users-api
    origins:
      https://api.example.com:
        - method: GET
          path: /users
          query: {page: "1"}
          responses:
            - status: 200
              json: {count: 1}
            - status: 429
              body: slow down
              headers: {Retry-After: "1"}
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass, field

import yaml

from .errors import MalformedProducerConfiguration
from .queue import RoundTripQueue, new_queue
from .transport import MockConfig, MockTransport


logger = logging.getLogger("rtqueue.mock.fixtures")

_MISSING = object()


def _require_mapping(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise MalformedProducerConfiguration(f"{what} must be a mapping, got {type(data).__name__}")
    return data


def _scalar_text(value: Any, what: str) -> str:
    """Render a YAML scalar the way it would appear on the wire."""
    if value is None:
        raise MalformedProducerConfiguration(f"{what} cannot be null")
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (dict, list)):
        raise MalformedProducerConfiguration(f"{what} must be a scalar, got {value!r}")
    return str(value)


def _string_map(data: Any, what: str) -> Dict[str, str]:
    if data is None:
        return {}
    mapping = _require_mapping(data, what)
    return {str(k): _scalar_text(v, f"{what} value for '{k}'") for k, v in mapping.items()}


@dataclass
class ResponseFixture:
    """One scripted response."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    json: Any = _MISSING

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ResponseFixture':
        """Create ResponseFixture from dictionary."""
        data = _require_mapping(data, "Response")
        if 'status' not in data:
            raise MalformedProducerConfiguration(f"Response is missing 'status': {data!r}")
        if 'json' in data and 'body' in data:
            raise MalformedProducerConfiguration("Response cannot have both 'json' and 'body'")

        body = data.get('body')
        if body is not None and not isinstance(body, str):
            raise MalformedProducerConfiguration(f"Response 'body' must be a string, got {body!r}")

        return cls(
            status=data['status'],
            headers=_string_map(data.get('headers'), "Response headers"),
            body=body,
            json=data.get('json', _MISSING)
        )

    def apply(self, queue: RoundTripQueue) -> RoundTripQueue:
        """Append this response to ``queue``."""
        headers = self.headers or None
        if self.json is not _MISSING:
            return queue.then_respond_json(self.status, self.json, headers)
        return queue.then_respond(self.status, self.body or '', headers)


@dataclass
class QueueFixture:
    """Criteria plus responses for one queue."""

    method: Optional[str] = None
    path: Optional[str] = None
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    responses: List[ResponseFixture] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QueueFixture':
        """Create QueueFixture from dictionary."""
        data = _require_mapping(data, "Queue")
        responses = data.get('responses') or []
        if not isinstance(responses, list):
            raise MalformedProducerConfiguration("Queue 'responses' must be a list")

        body = data.get('body')
        if body is not None and not isinstance(body, str):
            raise MalformedProducerConfiguration(f"Queue 'body' must be a string, got {body!r}")

        return cls(
            method=data.get('method'),
            path=data.get('path'),
            query=_string_map(data.get('query'), "Queue query"),
            headers=_string_map(data.get('headers'), "Queue headers"),
            body=body,
            responses=[ResponseFixture.from_dict(r) for r in responses]
        )

    def build(self) -> RoundTripQueue:
        """Build the immutable queue this fixture describes."""
        queue = new_queue()
        if self.method:
            queue = queue.with_method(self.method)
        if self.path is not None:
            queue = queue.with_path(self.path)
        for key, value in self.query.items():
            queue = queue.with_query(key, value)
        for name, value in self.headers.items():
            queue = queue.with_header(name, value)
        if self.body is not None:
            queue = queue.with_body(self.body)
        for response in self.responses:
            queue = response.apply(queue)
        return queue


@dataclass
class TransportFixture:
    """A complete fixture: every origin and its queues."""

    name: str = "unnamed"
    origins: Dict[str, List[QueueFixture]] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> 'TransportFixture':
        """Load fixture from YAML file."""
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Fixture file not found: {path}")

        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        fixture = cls.from_dict(data or {})
        logger.debug(f"Loaded fixture '{fixture.name}' from {path} ({len(fixture.origins)} origins)")
        return fixture

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransportFixture':
        """Create fixture from dictionary."""
        data = _require_mapping(data, "Fixture")
        origins_data = _require_mapping(data.get('origins') or {}, "Fixture 'origins'")

        origins: Dict[str, List[QueueFixture]] = {}
        for origin, queues in origins_data.items():
            if not isinstance(queues, list):
                raise MalformedProducerConfiguration(f"Queues for origin {origin} must be a list")
            origins[str(origin)] = [QueueFixture.from_dict(q) for q in queues]

        return cls(name=str(data.get('name', 'unnamed')), origins=origins)

    def build_transport(self, config: Optional[MockConfig] = None) -> MockTransport:
        """
        Build a transport with every origin registered.

        Args:
            config: Optional MockConfig for the transport

        Returns:
            MockTransport
        """
        transport = MockTransport(config=config)
        for origin, queues in self.origins.items():
            transport.register_origin(origin, *(q.build() for q in queues))
        return transport


def load_transport(yaml_path: Union[str, Path], config: Optional[MockConfig] = None) -> MockTransport:
    """
    Load a YAML fixture and build its transport in one call.

    Example:
        transport = load_transport('tests/fixtures/users.yaml')
        session = transport.session()
    """
    return TransportFixture.from_yaml(yaml_path).build_transport(config=config)
