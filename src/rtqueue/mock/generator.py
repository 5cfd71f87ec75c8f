"""
RTQueue Response Generator

Response producers consumed by the mock transport.

Features:
- Canned status/body/header responses
- JSON responses encoded eagerly at configuration time
- Prebuilt ``requests.Response`` objects served as-is
- Transport-level failures (raise instead of respond)

Every producer is a callable taking the intercepted ``PreparedRequest`` and
returning a ``requests.Response``. Responses are backed by a
``urllib3.HTTPResponse`` over an in-memory buffer, so ``stream=True``,
``iter_content()`` and ``.json()`` behave like a live server.
"""

import io
from http import HTTPStatus
from typing import Dict, Mapping, Optional, Protocol, Tuple, Union
from dataclasses import dataclass

from requests import PreparedRequest, Response
from requests.structures import CaseInsensitiveDict
from requests.utils import get_encoding_from_headers
from urllib3 import HTTPResponse

from ..common import encode_json, to_body_bytes
from .errors import MalformedProducerConfiguration


Body = Union[str, bytes]
HeaderPairs = Tuple[Tuple[str, str], ...]


class ResponseProducer(Protocol):
    """Produces the response for one matched request, or raises."""

    def __call__(self, request: PreparedRequest) -> Response:
        ...


def _reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ''


def build_response(
    request: Optional[PreparedRequest],
    status: int,
    body: Body = b'',
    headers: Optional[Mapping[str, str]] = None,
    reason: Optional[str] = None
) -> Response:
    """
    Build a complete ``requests.Response`` without touching the network.

    Args:
        request: Request the response answers (may be None)
        status: HTTP status code
        body: Response body, str is UTF-8 encoded
        headers: Response headers
        reason: Reason phrase, defaults to the standard phrase for ``status``

    Returns:
        Response ready to be returned from a transport adapter

    Example:
        response = build_response(request, 200, '{"ok": true}',
                                  {'Content-Type': 'application/json'})
        assert response.json() == {'ok': True}
    """
    content = to_body_bytes(body)
    header_dict = CaseInsensitiveDict(headers or {})
    reason = reason if reason is not None else _reason_phrase(status)

    raw = HTTPResponse(
        body=io.BytesIO(content),
        headers=dict(header_dict),
        status=status,
        reason=reason,
        preload_content=False,
        decode_content=False
    )

    response = Response()
    response.status_code = status
    response.headers = header_dict
    response.encoding = get_encoding_from_headers(header_dict)
    response.raw = raw
    response.reason = reason
    if request is not None:
        response.url = request.url
        response.request = request
    return response


def _validate_status(status: int) -> int:
    if isinstance(status, bool) or not isinstance(status, int):
        raise MalformedProducerConfiguration(f"Status code must be an int, got {status!r}")
    if not 100 <= status <= 599:
        raise MalformedProducerConfiguration(f"Status code must be in 100..599, got {status}")
    return status


def _validate_headers(headers: Optional[Mapping[str, str]]) -> HeaderPairs:
    if headers is None:
        return ()
    if not isinstance(headers, Mapping):
        raise MalformedProducerConfiguration(f"Headers must be a mapping, got {type(headers).__name__}")
    pairs = []
    for key, value in headers.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise MalformedProducerConfiguration(
                f"Header names and values must be str, got {key!r}: {value!r}"
            )
        pairs.append((key, value))
    return tuple(pairs)


@dataclass(frozen=True)
class CannedResponse:
    """Producer returning a fixed status, body and headers."""

    status: int
    body: bytes = b''
    headers: HeaderPairs = ()

    def __call__(self, request: PreparedRequest) -> Response:
        return build_response(request, self.status, self.body, dict(self.headers))


@dataclass(frozen=True)
class StaticResponse:
    """Producer returning a prebuilt response object."""

    response: Response

    def __call__(self, request: PreparedRequest) -> Response:
        if self.response.request is None:
            self.response.request = request
        if self.response.url is None:
            self.response.url = request.url
        return self.response


@dataclass(frozen=True)
class RaisingProducer:
    """Producer simulating a transport-level failure."""

    error: BaseException

    def __call__(self, request: PreparedRequest) -> Response:
        raise self.error


def simple_response(
    status: int,
    body: Body = '',
    headers: Optional[Mapping[str, str]] = None
) -> CannedResponse:
    """
    Producer for a plain canned response.

    Args:
        status: HTTP status code
        body: Response body
        headers: Response headers

    Returns:
        CannedResponse producer

    Raises:
        MalformedProducerConfiguration: On invalid status, body or headers
    """
    try:
        content = to_body_bytes(body)
    except TypeError as e:
        raise MalformedProducerConfiguration(str(e)) from e
    return CannedResponse(_validate_status(status), content, _validate_headers(headers))


def json_response(
    status: int,
    value,
    headers: Optional[Mapping[str, str]] = None
) -> CannedResponse:
    """
    Producer for a JSON response.

    The value is encoded now, so an unserializable value fails while the
    test is being set up rather than when the client calls.

    Args:
        status: HTTP status code
        value: JSON-serializable value
        headers: Extra response headers (Content-Type is set unless given)

    Returns:
        CannedResponse producer

    Raises:
        MalformedProducerConfiguration: If ``value`` cannot be encoded
    """
    try:
        content = encode_json(value)
    except (TypeError, ValueError) as e:
        raise MalformedProducerConfiguration(f"Cannot encode JSON response body: {e}") from e

    merged: Dict[str, str] = {'Content-Type': 'application/json'}
    for key, value_ in _validate_headers(headers):
        if key.lower() == 'content-type':
            merged.pop('Content-Type', None)
        merged[key] = value_
    return CannedResponse(_validate_status(status), content, tuple(merged.items()))


def static_response(response: Response) -> StaticResponse:
    """
    Producer serving a prebuilt response object.

    Args:
        response: Response to return

    Returns:
        StaticResponse producer
    """
    if not isinstance(response, Response):
        raise MalformedProducerConfiguration(
            f"Expected a requests.Response, got {type(response).__name__}"
        )
    return StaticResponse(response)


def raising(error: BaseException) -> RaisingProducer:
    """
    Producer raising ``error`` instead of responding.

    Args:
        error: Exception instance, e.g. ``requests.ConnectionError()``

    Returns:
        RaisingProducer
    """
    if not isinstance(error, BaseException):
        raise MalformedProducerConfiguration(f"Expected an exception instance, got {error!r}")
    return RaisingProducer(error)
