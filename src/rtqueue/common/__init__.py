"""
RTQueue Common Utilities

Shared utilities and helpers used across RTQueue modules.
"""

from .utils import buffer_body, header_value, encode_json, to_body_bytes
from .url_utils import URLParts

__all__ = [
    'buffer_body',
    'header_value',
    'encode_json',
    'to_body_bytes',
    'URLParts'
]
