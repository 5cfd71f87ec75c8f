"""
RTQueue Common Utilities

Request-body and header helpers shared by matchers and response producers.
"""

import json
from typing import Any, Optional

from requests import PreparedRequest


def buffer_body(request: PreparedRequest) -> bytes:
    """
    Read the request body into memory and put it back on the request.

    ``PreparedRequest.body`` can be ``None``, ``str``, ``bytes``, a file-like
    object or an iterator of chunks (streaming uploads). File-like and
    iterator bodies can only be read once, so they are replaced with the
    bytes that were read. After this call every reader sees the same content.

    Args:
        request: Prepared request whose body should be buffered

    Returns:
        Body content as bytes (``b''`` when there is no body)

    Raises:
        OSError: If a file-like body fails to read
        TypeError: If an iterator yields something other than str/bytes

    Example:
        body = buffer_body(request)
        assert request.body == body or isinstance(request.body, str)
    """
    body = request.body
    if body is None:
        return b''
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        # str bodies are re-readable, leave them as the client set them
        return body.encode('utf-8')
    if isinstance(body, (bytearray, memoryview)):
        data = bytes(body)
    elif hasattr(body, 'read'):
        data = _to_bytes(body.read())
    else:
        data = b''.join(_to_bytes(chunk) for chunk in body)

    request.body = data
    return data


def _to_bytes(chunk: Any) -> bytes:
    if isinstance(chunk, bytes):
        return chunk
    if isinstance(chunk, str):
        return chunk.encode('utf-8')
    if isinstance(chunk, (bytearray, memoryview)):
        return bytes(chunk)
    raise TypeError(f"Request body chunk must be str or bytes, got {type(chunk).__name__}")


def header_value(request: PreparedRequest, name: str) -> str:
    """
    Get a request header value, or "" if the header is absent.

    Header names are case-insensitive. Byte values are decoded as latin-1,
    which is how HTTP/1.1 carries them on the wire.

    Args:
        request: Prepared request
        name: Header name

    Returns:
        Header value as str
    """
    value = request.headers.get(name) if request.headers is not None else None
    if value is None:
        return ''
    if isinstance(value, bytes):
        return value.decode('latin-1')
    return str(value)


def encode_json(value: Any) -> bytes:
    """
    Encode a value as compact UTF-8 JSON.

    NaN and Infinity are rejected because they are not valid JSON.

    Args:
        value: JSON-serializable value

    Returns:
        Encoded body

    Raises:
        TypeError: If the value contains unserializable objects
        ValueError: If the value contains NaN/Infinity or circular references
    """
    return json.dumps(value, separators=(',', ':'), ensure_ascii=False, allow_nan=False).encode('utf-8')


def to_body_bytes(body: Optional[Any]) -> bytes:
    """
    Coerce a canned body (str, bytes or None) to bytes.

    Args:
        body: Body as configured by the caller

    Returns:
        Body bytes

    Raises:
        TypeError: If body is not str, bytes or None
    """
    if body is None:
        return b''
    if isinstance(body, (bytes, bytearray, memoryview)):
        return bytes(body)
    if isinstance(body, str):
        return body.encode('utf-8')
    raise TypeError(f"Body must be str or bytes, got {type(body).__name__}")
