"""Exception classes and error handling"""

import httpx


class FhirClientError(Exception):
    """Base class for everything this library raises"""


class ConfigError(FhirClientError):
    """The client was constructed with unusable connection settings"""


class TransportError(FhirClientError):
    """
    The request could not be completed: a connection failure or a broken response stream.

    The original exception is always chained as __cause__.
    """

    def __init__(self, message: str, request: httpx.Request | None = None):
        super().__init__(message)
        self.request = request


class ResponseSyntaxError(FhirClientError, ValueError):
    """A response advertised a JSON content type, but its body did not parse"""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class InvalidResourceError(FhirClientError, ValueError):
    """A resource lacks the resourceType (or id) needed to address it"""
