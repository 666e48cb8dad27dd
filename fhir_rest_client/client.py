"""Client for the FHIR RESTful API"""

import dataclasses
from collections.abc import Callable, Mapping

from fhir_rest_client import http, request
from fhir_rest_client.config import CallOverride, ConnectionConfig, merge_override
from fhir_rest_client.request import Query, RequestDescription
from fhir_rest_client.response import FhirResult
from fhir_rest_client.transport import Transport


class FhirClient:
    """
    Talks to a single FHIR server, over a shared keep-alive connection pool.

    Every interaction is a coroutine that returns a FhirResult (response metadata plus
    decoded body), or raises TransportError / ResponseSyntaxError. HTTP error statuses
    like 404 are not raised, check response.status_code yourself.

    Use this as an async context manager, or call close() when you are done with it.

    Each interaction accepts an optional CallOverride, to change headers or the like
    for just that one call.
    """

    def __init__(self, config: ConnectionConfig | str | None = None, **kwargs):
        """
        :param config: connection settings, or a base URL like "https://example.com/fhir/"
        :param kwargs: when config is a URL or omitted, other ConnectionConfig fields
        """
        if isinstance(config, str):
            config = ConnectionConfig.from_url(config, **kwargs)
        elif config is None:
            config = ConnectionConfig(**kwargs)
        elif kwargs:
            raise TypeError("Pass either a ConnectionConfig or keyword arguments, not both")

        if config.transport is None:
            config = dataclasses.replace(config, transport=Transport.create(config))

        self._config = config

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.close()

    @property
    def config(self) -> ConnectionConfig:
        return self._config

    async def close(self) -> None:
        """Releases all pooled connections"""
        if self._config.transport:
            await self._config.transport.aclose()

    ###########################################################################################
    #
    # Interactions
    #
    ###########################################################################################

    async def create(self, resource: Mapping, override: CallOverride | None = None) -> FhirResult:
        """POSTs a new resource to its type endpoint"""
        return await self._request(override, request.create, resource)

    async def update(self, resource: Mapping, override: CallOverride | None = None) -> FhirResult:
        """PUTs a resource to its type/id endpoint"""
        return await self._request(override, request.update, resource)

    async def read(
        self, resource_type: str, resource_id: str, override: CallOverride | None = None
    ) -> FhirResult:
        return await self._request(override, request.read, resource_type, resource_id)

    async def vread(
        self,
        resource_type: str,
        resource_id: str,
        version_id: str,
        override: CallOverride | None = None,
    ) -> FhirResult:
        """Reads one specific historical version of a resource"""
        return await self._request(override, request.vread, resource_type, resource_id, version_id)

    async def delete(
        self, resource_type: str, resource_id: str, override: CallOverride | None = None
    ) -> FhirResult:
        return await self._request(override, request.delete, resource_type, resource_id)

    async def transaction(
        self, bundle: Mapping, override: CallOverride | None = None
    ) -> FhirResult:
        """POSTs a transaction (or batch) Bundle to the server base"""
        return await self._request(override, request.transaction, bundle)

    async def search(
        self, resource_type: str, query: Query | None = None, override: CallOverride | None = None
    ) -> FhirResult:
        """
        Searches a resource type.

        :param resource_type: type to search, like "Patient"
        :param query: search parameters, like {"name": "smith", "_count": 10}
        :param override: per-call connection changes
        """
        return await self._request(override, request.search, resource_type, query)

    ###########################################################################################
    #
    # Helpers
    #
    ###########################################################################################

    async def _request(
        self,
        override: CallOverride | None,
        build: Callable[..., RequestDescription],
        *args,
    ) -> FhirResult:
        config = merge_override(self._config, override)
        description = build(config, *args)

        if config.transport is False:
            async with Transport.create(config, keep_alive=False) as transport:
                return await http.request(transport, config, description)

        return await http.request(config.transport, config, description)
