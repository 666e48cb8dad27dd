"""Tests for http.py"""

from unittest import mock

import httpx

from fhir_rest_client import errors, http, request
from fhir_rest_client.config import ConnectionConfig
from fhir_rest_client.transport import Transport
from tests.utils import AsyncTestCase, make_response


class TestHttpRequest(AsyncTestCase):
    """Test case for a single request/response cycle"""

    def setUp(self):
        super().setUp()
        self.config = ConnectionConfig.from_url("http://example.com:8080/fhir/")
        self.session = mock.AsyncMock(spec=httpx.AsyncClient)
        self.session.build_request.side_effect = httpx.AsyncClient().build_request
        self.transport = Transport(self.session)

    async def test_sends_full_url(self):
        self.session.send.return_value = make_response(status_code=204)
        description = request.delete(self.config, "Patient", "1")

        with self.assertLogs(level="DEBUG") as logs:
            result = await http.request(self.transport, self.config, description)

        self.assertEqual(204, result.response.status_code)
        sent = self.session.send.call_args[0][0]
        self.assertEqual("DELETE", sent.method)
        self.assertEqual("http://example.com:8080/fhir/Patient/1", str(sent.url))
        self.assertTrue(self.session.send.call_args.kwargs["stream"])
        self.assertIn("DEBUG:root:DELETE http://example.com:8080/fhir/Patient/1", logs.output)

    async def test_response_is_closed_after_decoding(self):
        response = make_response(content=b"hi", headers={"Content-Type": "text/plain"})
        self.session.send.return_value = response
        await http.request(self.transport, self.config, request.read(self.config, "Patient", "1"))
        self.assertTrue(response.is_closed)

    async def test_response_is_closed_after_errors(self):
        response = make_response(content=b"{", headers={"Content-Type": "application/json"})
        self.session.send.return_value = response
        with self.assertRaises(errors.ResponseSyntaxError):
            await http.request(
                self.transport, self.config, request.read(self.config, "Patient", "1")
            )
        self.assertTrue(response.is_closed)

    async def test_send_errors_become_transport_errors(self):
        self.session.send.side_effect = httpx.ReadTimeout("timed out")
        description = request.read(self.config, "Patient", "1")
        expected = 'connecting to "http://example.com'
        with self.assertRaisesRegex(errors.TransportError, expected) as cm:
            await http.request(self.transport, self.config, description)
        self.assertIsInstance(cm.exception.__cause__, httpx.ReadTimeout)

    async def test_unexpected_errors_propagate(self):
        self.session.send.side_effect = RuntimeError("boom")
        with self.assertRaisesRegex(RuntimeError, "boom"):
            await http.request(
                self.transport, self.config, request.read(self.config, "Patient", "1")
            )
