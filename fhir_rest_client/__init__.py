"""Async client for FHIR RESTful servers"""

__version__ = "1.0.0"

from .client import FhirClient
from .config import CallOverride, ConnectionConfig, TlsOptions, merge_override
from .errors import (
    ConfigError,
    FhirClientError,
    InvalidResourceError,
    ResponseSyntaxError,
    TransportError,
)
from .media_types import MediaType, Parseability, classify_content_type, parse_media_type
from .request import DEFAULT_HEADERS, RequestDescription
from .response import FhirResult, Response
from .transport import Transport
