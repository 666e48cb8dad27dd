"""Various test helper methods"""

import unittest
from unittest import mock

import httpx
import respx

from fhir_rest_client import FhirClient


class AsyncTestCase(unittest.IsolatedAsyncioTestCase):
    """Test case to hold some common code (suitable for async *OR* sync tests)"""

    def setUp(self):
        super().setUp()

        # It's so common to want to see more than the tiny default fragment.
        # So we just enable this across the board.
        self.maxDiff = None

    def patch(self, *args, **kwargs) -> mock.Mock:
        """Syntactic sugar to ease making a mock over a test's lifecycle, without decorators"""
        patcher = mock.patch(*args, **kwargs)
        self.addCleanup(patcher.stop)
        return patcher.start()

    def patch_object(self, *args, **kwargs) -> mock.Mock:
        """Syntactic sugar for making an object mock over a test's lifecycle, without decorators"""
        patcher = mock.patch.object(*args, **kwargs)
        self.addCleanup(patcher.stop)
        return patcher.start()


class ServerTestCase(AsyncTestCase):
    """Test case with a mocked FHIR server (via respx) and a client pointed at it"""

    def setUp(self):
        super().setUp()

        self.server_url = "http://example.com:8080/fhir/"

        # Initialize responses mock
        self.respx_mock = respx.mock(assert_all_called=False)
        self.addCleanup(self.respx_mock.stop)
        self.respx_mock.start()

        self.client = FhirClient(self.server_url)
        self.addAsyncCleanup(self.client.close)


def make_response(
    status_code: int = 200,
    *,
    content: bytes = b"",
    headers: dict | None = None,
    stream: httpx.AsyncByteStream | None = None,
    url: str = "http://example.com/",
) -> httpx.Response:
    """Makes an unread, streamable response, like a transport hands back"""
    return httpx.Response(
        status_code,
        headers=headers,
        stream=stream or httpx.ByteStream(content),
        request=httpx.Request("GET", url),
    )


class BrokenStream(httpx.AsyncByteStream):
    """A response body that dies partway through"""

    def __init__(self, first_chunk: bytes = b'{"resourceType": '):
        self._first_chunk = first_chunk

    async def __aiter__(self):
        yield self._first_chunk
        raise httpx.ReadError("Connection reset by peer")
