"""The pooled HTTP(S) connection layer, backed by httpx"""

import logging
import ssl

import httpx

from fhir_rest_client import errors
from fhir_rest_client.config import ConnectionConfig, TlsOptions

# OpenSSL method names (as used by Node-style TLS options), mapped to (minimum, maximum) versions.
# None means "leave the library default alone".
SECURE_PROTOCOLS = {
    "TLS_method": (None, None),
    "TLS_client_method": (None, None),
    "SSLv23_method": (None, None),
    "SSLv23_client_method": (None, None),
    "TLSv1_method": (ssl.TLSVersion.TLSv1, ssl.TLSVersion.TLSv1),
    "TLSv1_client_method": (ssl.TLSVersion.TLSv1, ssl.TLSVersion.TLSv1),
    "TLSv1_1_method": (ssl.TLSVersion.TLSv1_1, ssl.TLSVersion.TLSv1_1),
    "TLSv1_1_client_method": (ssl.TLSVersion.TLSv1_1, ssl.TLSVersion.TLSv1_1),
    "TLSv1_2_method": (ssl.TLSVersion.TLSv1_2, ssl.TLSVersion.TLSv1_2),
    "TLSv1_2_client_method": (ssl.TLSVersion.TLSv1_2, ssl.TLSVersion.TLSv1_2),
    "TLSv1_3_method": (ssl.TLSVersion.TLSv1_3, ssl.TLSVersion.TLSv1_3),
    "TLSv1_3_client_method": (ssl.TLSVersion.TLSv1_3, ssl.TLSVersion.TLSv1_3),
}


def make_ssl_context(tls: TlsOptions) -> ssl.SSLContext:
    """
    Translates TLS options into an SSLContext for httpx.

    Raises ConfigError if the options can't be honored (missing files, bad cipher strings, etc).
    """
    if tls.pfx:
        raise errors.ConfigError(
            "PFX/PKCS#12 bundles are not supported. Provide PEM files with cert and key instead."
        )
    if tls.key and not tls.cert:
        raise errors.ConfigError("A TLS key was provided without a matching cert.")

    ca = tls.ca
    if isinstance(ca, bytes):
        try:
            ca = ca.decode("ascii")
        except UnicodeDecodeError as exc:
            raise errors.ConfigError(f"Could not read TLS CA bytes as PEM text: {exc}") from exc

    try:
        # A provided CA replaces the system trust store instead of extending it
        if ca and "-----BEGIN" in ca:
            context = ssl.create_default_context(cadata=ca)
        else:
            context = ssl.create_default_context(cafile=ca)

        if tls.cert:
            context.load_cert_chain(tls.cert, keyfile=tls.key, password=tls.passphrase)

        if tls.ciphers:
            context.set_ciphers(tls.ciphers)
    except (OSError, ssl.SSLError) as exc:
        raise errors.ConfigError(f"Could not load TLS options: {exc}") from exc

    if tls.secure_protocol:
        if tls.secure_protocol not in SECURE_PROTOCOLS:
            raise errors.ConfigError(f"Unknown secure protocol '{tls.secure_protocol}'")
        minimum, maximum = SECURE_PROTOCOLS[tls.secure_protocol]
        if minimum:
            context.minimum_version = minimum
        if maximum:
            context.maximum_version = maximum

    if not tls.reject_unauthorized:
        logging.warning("TLS certificate verification is disabled. Server identity is not checked.")
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

    return context


class Transport:
    """
    Sends requests over a (usually pooled) httpx session.

    Use this as an async context manager, or call aclose() when done.
    """

    def __init__(self, session: httpx.AsyncClient, servername: str | None = None):
        """
        :param session: the httpx session that owns the connection pool
        :param servername: hostname to present via SNI on https connections, instead of the URL host
        """
        self._session = session
        self._servername = servername

    @classmethod
    def create(cls, config: ConnectionConfig, keep_alive: bool = True) -> "Transport":
        """Creates a transport appropriate for the given connection settings"""
        if keep_alive:
            limits = httpx.Limits(max_connections=None, max_keepalive_connections=20)
        else:
            limits = httpx.Limits(max_keepalive_connections=0)

        # TLS options only mean something for https
        verify = make_ssl_context(config.tls) if config.protocol == "https" else True

        session = httpx.AsyncClient(
            verify=verify,
            limits=limits,
            timeout=300,  # five minutes to be generous, some servers are slow with big bundles
        )
        return cls(session, servername=config.tls.servername)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.aclose()

    @property
    def is_closed(self) -> bool:
        return self._session.is_closed

    def build_request(
        self, method: str, url: str, headers: httpx.Headers, content: bytes | None
    ) -> httpx.Request:
        extensions = {}
        if self._servername and url.startswith("https:"):
            extensions["sni_hostname"] = self._servername
        return self._session.build_request(
            method, url, headers=headers, content=content, extensions=extensions
        )

    async def send(self, request: httpx.Request) -> httpx.Response:
        """
        Sends the request and returns as soon as response headers arrive.

        The body is left unread: the caller must consume it and aclose() the response.
        """
        return await self._session.send(request, stream=True)

    async def aclose(self) -> None:
        """Drops every pooled connection. Safe to call more than once."""
        if not self._session.is_closed:
            await self._session.aclose()
