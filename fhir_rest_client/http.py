"""Runs a single request/response cycle against a FHIR server"""

import logging

import httpx

from fhir_rest_client import errors
from fhir_rest_client.config import ConnectionConfig
from fhir_rest_client.request import RequestDescription
from fhir_rest_client.response import FhirResult, decode_response
from fhir_rest_client.transport import Transport


async def request(
    transport: Transport, config: ConnectionConfig, description: RequestDescription
) -> FhirResult:
    """
    Issues a single HTTP request and decodes the response.

    There are no retries, and HTTP error statuses are returned like any other response.

    May raise a TransportError or a ResponseSyntaxError.

    :param transport: transport to send the request over
    :param config: connection settings (after any per-call overrides)
    :param description: the request to send, as built by the request module
    :returns: the response metadata and decoded body
    """
    url = config.origin + description.path
    http_request = transport.build_request(
        description.method, url, description.headers, description.content
    )

    logging.debug("%s %s", description.method, url)
    try:
        response = await transport.send(http_request)
    except httpx.HTTPError as exc:
        raise errors.TransportError(
            f'An error occurred when connecting to "{url}": {exc}', http_request
        ) from exc

    try:
        logging.debug("%s %s returned %d", description.method, url, response.status_code)
        return await decode_response(response)
    finally:
        await response.aclose()
