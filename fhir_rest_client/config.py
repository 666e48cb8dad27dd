"""Connection settings for a FHIR server, and per-call overrides of them"""

import dataclasses
import urllib.parse
from collections.abc import Mapping
from typing import TYPE_CHECKING, Literal

from fhir_rest_client import errors

if TYPE_CHECKING:
    from fhir_rest_client.transport import Transport

DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
}


def normalize_protocol(protocol: str) -> str:
    """Accepts both "https" and "https:" (the URL-parser flavor) and returns the bare scheme"""
    scheme = protocol.lower().removesuffix(":")
    if scheme not in DEFAULT_PORTS:
        raise errors.ConfigError(f"Unsupported protocol '{protocol}', expected http or https")
    return scheme


@dataclasses.dataclass(frozen=True)
class TlsOptions:
    """
    TLS parameters used when talking https.

    cert, key, and ca are paths to PEM files (ca may also hold PEM text directly, as str or bytes).
    """

    pfx: str | bytes | None = None
    key: str | None = None
    passphrase: str | None = None
    cert: str | None = None
    ca: str | bytes | None = None
    ciphers: str | None = None
    reject_unauthorized: bool = True
    secure_protocol: str | None = None
    servername: str | None = None


@dataclasses.dataclass(frozen=True)
class ConnectionConfig:
    """
    Where and how to reach a FHIR server.

    The transport field controls connection pooling:
    - None: a keep-alive Transport is created by the client
    - False: no pooling, every call opens (and closes) its own connection
    - a Transport instance: used as-is (and closed by the client)
    """

    protocol: str = "http"
    host: str = "localhost"
    port: int | None = None
    path: str = "/"
    headers: Mapping[str, str] = dataclasses.field(default_factory=dict)
    tls: TlsOptions = dataclasses.field(default_factory=TlsOptions)
    transport: "Transport | Literal[False] | None" = None

    def __post_init__(self):
        # Frozen dataclass, so normalize through object.__setattr__
        object.__setattr__(self, "protocol", normalize_protocol(self.protocol))
        if not self.path.startswith("/"):
            object.__setattr__(self, "path", "/" + self.path)

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "ConnectionConfig":
        """
        Builds a config from a URL like https://example.com:8443/fhir/

        Any keyword arguments are passed along as other fields (tls, headers, transport...).
        The query string and fragment of the URL are ignored.
        """
        parsed = urllib.parse.urlsplit(url)
        if not parsed.scheme or not parsed.hostname:
            raise errors.ConfigError(f"Could not parse URL '{url}'")

        try:
            port = parsed.port
        except ValueError as exc:
            raise errors.ConfigError(f"Could not parse port in URL '{url}'") from exc

        return cls(
            protocol=parsed.scheme,
            host=parsed.hostname,
            port=port,
            path=parsed.path or "/",
            **kwargs,
        )

    @property
    def origin(self) -> str:
        """The scheme://host:port part of every request URL"""
        port = self.port or DEFAULT_PORTS[self.protocol]
        host = self.host
        if ":" in host:  # bare IPv6 address
            host = f"[{host}]"
        return f"{self.protocol}://{host}:{port}"


@dataclasses.dataclass(frozen=True)
class CallOverride:
    """
    Settings to change for a single call. Fields left as None are inherited from the client.

    Note that headers replace the client's own header set (the library's default headers
    like Accept are still applied underneath either one).
    """

    protocol: str | None = None
    host: str | None = None
    port: int | None = None
    path: str | None = None
    headers: Mapping[str, str] | None = None


def merge_override(config: ConnectionConfig, override: CallOverride | None) -> ConnectionConfig:
    """Returns a copy of config with every field that the override sets replaced"""
    if override is None:
        return config

    changes = {
        field.name: getattr(override, field.name)
        for field in dataclasses.fields(override)
        if getattr(override, field.name) is not None
    }
    return dataclasses.replace(config, **changes)
