"""
Shared fixtures for RTQueue tests.
"""

import pytest
import requests


@pytest.fixture
def make_request():
    """Factory for prepared requests, the type the transport receives."""

    def _make_request(method='GET', url='http://example.com/', headers=None, data=None, json=None):
        return requests.Request(method, url, headers=headers, data=data, json=json).prepare()

    return _make_request
