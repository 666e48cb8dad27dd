"""Decodes FHIR server responses: decompression, text decoding, and JSON parsing"""

import codecs
import json
import logging
import zlib
from typing import Any, NamedTuple

import httpx

from fhir_rest_client import errors, media_types

_GZIP_MAGIC = b"\x1f\x8b"


class Response(NamedTuple):
    status_code: int
    headers: httpx.Headers  # case-insensitive


class FhirResult(NamedTuple):
    """What every successful call returns. The body is parsed JSON, or the raw text for non-JSON"""

    response: Response
    body: Any


class Inflater:
    """
    Incrementally decompresses a gzip or zlib (deflate) stream.

    Concatenated gzip members are decoded back to back, like gunzip does.
    """

    def __init__(self, wbits: int):
        self._wbits = wbits
        self._decompressor = zlib.decompressobj(wbits)
        self._seen_input = False

    @classmethod
    def for_encoding(cls, content_encoding: str) -> "Inflater | None":
        """Returns an inflater for a Content-Encoding value, or None if nothing needs decoding"""
        if content_encoding == "gzip":
            return cls(16 + zlib.MAX_WBITS)
        elif content_encoding == "deflate":
            return cls(zlib.MAX_WBITS)
        return None

    @property
    def _is_gzip(self) -> bool:
        return self._wbits > zlib.MAX_WBITS

    def decompress(self, data: bytes) -> bytes:
        output = []
        while data:
            self._seen_input = True
            output.append(self._decompressor.decompress(data))
            if not self._decompressor.eof:
                break

            # Leftovers after the end of a stream: either another gzip member or trailing junk
            data = self._decompressor.unused_data
            if self._is_gzip and data.startswith(_GZIP_MAGIC):
                self._decompressor = zlib.decompressobj(self._wbits)
            else:
                break
        return b"".join(output)

    def flush(self) -> bytes:
        if self._seen_input and not self._decompressor.eof:
            raise zlib.error("unexpected end of compressed data")
        return self._decompressor.flush()


def _reject_constant(name: str) -> None:
    # NaN and Infinity are Python extensions, not JSON
    raise ValueError(f"Invalid JSON literal: {name}")


def parse_body(text: str, content_type: str | None, status_code: int) -> Any:
    """
    Parses the body as JSON if the content type says it is JSON, otherwise returns it unchanged.

    Raises ResponseSyntaxError if the body should be JSON but is not.
    """
    parseability = media_types.classify_content_type(content_type)

    if parseability == media_types.Parseability.MALFORMED:
        logging.debug("Could not understand content type '%s', treating body as text", content_type)
    elif parseability == media_types.Parseability.PARSEABLE:
        try:
            return json.loads(text, parse_constant=_reject_constant)
        except ValueError as exc:  # includes JSONDecodeError
            raise errors.ResponseSyntaxError(
                f"Could not parse {content_type} response body: {exc}", status_code
            ) from exc

    return text


async def decode_response(response: httpx.Response) -> FhirResult:
    """
    Reads a streamed response to the end and decodes its body.

    The body is decompressed per Content-Encoding (gzip, deflate, or identity),
    then decoded as UTF-8 (replacing invalid bytes), then maybe parsed as JSON.

    Raises TransportError if the stream breaks (including bad compressed data),
    before any parsing is attempted.
    """
    content_encoding = response.headers.get("Content-Encoding", "identity").strip().lower()
    inflater = Inflater.for_encoding(content_encoding)
    text_decoder = codecs.getincrementaldecoder("utf8")(errors="replace")

    chunks = []
    try:
        async for raw in response.aiter_raw():
            data = inflater.decompress(raw) if inflater else raw
            chunks.append(text_decoder.decode(data))
        if inflater:
            chunks.append(text_decoder.decode(inflater.flush()))
        chunks.append(text_decoder.decode(b"", final=True))
    except (httpx.HTTPError, zlib.error) as exc:
        raise errors.TransportError(
            f'Could not read response from "{response.request.url}": {exc}', response.request
        ) from exc

    body = parse_body("".join(chunks), response.headers.get("Content-Type"), response.status_code)
    return FhirResult(Response(response.status_code, response.headers), body)
