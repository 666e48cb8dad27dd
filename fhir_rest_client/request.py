"""Builds HTTP requests for each FHIR RESTful interaction"""

import json
import types
import urllib.parse
from collections.abc import Mapping, Sequence
from typing import Any, NamedTuple

import httpx

from fhir_rest_client import __version__, errors
from fhir_rest_client.config import ConnectionConfig

# Applied to every request, underneath any headers the caller provides
DEFAULT_HEADERS = types.MappingProxyType(
    {
        "Accept": "application/fhir+json, application/json+fhir, application/json;q=0.9",
        "Accept-Charset": "utf-8",
        "Accept-Encoding": "gzip,deflate",
        "User-Agent": f"fhir-rest-client/{__version__}",
    }
)

# Describes the body we send, so these always win over other headers
BODY_CONTENT_TYPE = "application/fhir+json; charset=utf-8"

Query = Mapping[str, Any] | Sequence[tuple[str, Any]]


class RequestDescription(NamedTuple):
    method: str
    path: str  # includes any query string
    headers: httpx.Headers
    content: bytes | None


def resolve_path(base_path: str, relative: str) -> str:
    """
    Resolves a relative reference against the base path, like a browser would.

    Note that a trailing slash matters: "Patient" against "/fhir/" is "/fhir/Patient",
    but against "/fhir" it is just "/Patient".
    """
    return urllib.parse.urljoin(base_path, relative)


def build_headers(headers: Mapping[str, str] | None, content: bytes | None = None) -> httpx.Headers:
    """Layers the given headers over the defaults (case-insensitively), plus any body headers"""
    final_headers = httpx.Headers(DEFAULT_HEADERS)
    final_headers.update(headers or {})

    if content is not None:
        final_headers["Content-Encoding"] = "identity"
        final_headers["Content-Length"] = str(len(content))
        final_headers["Content-Type"] = BODY_CONTENT_TYPE

    return final_headers


def serialize(resource: Mapping) -> bytes:
    """Returns compact UTF-8 JSON for a resource"""
    return json.dumps(resource, ensure_ascii=False, separators=(",", ":")).encode("utf8")


def _describe(
    config: ConnectionConfig, method: str, path: str, body: Mapping | None = None
) -> RequestDescription:
    content = None if body is None else serialize(body)
    return RequestDescription(method, path, build_headers(config.headers, content), content)


def _resource_type(resource: Mapping) -> str:
    resource_type = resource.get("resourceType")
    if not resource_type:
        raise errors.InvalidResourceError("Resource is missing a resourceType")
    return resource_type


def _resource_id(resource: Mapping) -> str:
    resource_id = resource.get("id")
    if not resource_id:
        raise errors.InvalidResourceError(f"{_resource_type(resource)} resource is missing an id")
    return resource_id


###############################################################################
#
# Interactions
#
###############################################################################


def create(config: ConnectionConfig, resource: Mapping) -> RequestDescription:
    path = resolve_path(config.path, _resource_type(resource))
    return _describe(config, "POST", path, resource)


def update(config: ConnectionConfig, resource: Mapping) -> RequestDescription:
    path = resolve_path(config.path, f"{_resource_type(resource)}/{_resource_id(resource)}")
    return _describe(config, "PUT", path, resource)


def read(config: ConnectionConfig, resource_type: str, resource_id: str) -> RequestDescription:
    path = resolve_path(config.path, f"{resource_type}/{resource_id}")
    return _describe(config, "GET", path)


def vread(
    config: ConnectionConfig, resource_type: str, resource_id: str, version_id: str
) -> RequestDescription:
    path = resolve_path(config.path, f"{resource_type}/{resource_id}/_history/{version_id}")
    return _describe(config, "GET", path)


def delete(config: ConnectionConfig, resource_type: str, resource_id: str) -> RequestDescription:
    path = resolve_path(config.path, f"{resource_type}/{resource_id}")
    return _describe(config, "DELETE", path)


def transaction(config: ConnectionConfig, bundle: Mapping) -> RequestDescription:
    """Transactions are posted to the server base itself"""
    return _describe(config, "POST", config.path, bundle)


def _query_pairs(query: Query) -> list[tuple[str, Any]]:
    """Flattens a query into (name, value) pairs, expanding list values into repeats"""
    items = query.items() if isinstance(query, Mapping) else query
    pairs = []
    for name, value in items:
        if isinstance(value, list | tuple):
            pairs.extend((name, item) for item in value)
        else:
            pairs.append((name, value))
    return pairs


def _query_value(value: Any) -> str:
    # FHIR booleans are lowercase, and a missing value is just empty
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def search(config: ConnectionConfig, resource_type: str, query: Query | None) -> RequestDescription:
    """
    Searches by GETting the type with search parameters in the query string.

    The query can be a mapping (where list values turn into repeated parameters)
    or a sequence of (name, value) pairs, when order across names matters.
    """
    path = resolve_path(config.path, resource_type)
    if query:
        pairs = [(name, _query_value(value)) for name, value in _query_pairs(query)]
        path += "?" + urllib.parse.urlencode(pairs, quote_via=urllib.parse.quote)
    return _describe(config, "GET", path)
