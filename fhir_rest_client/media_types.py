"""Media type (Content-Type) parsing, and deciding which response bodies are JSON"""

import enum
import re
from typing import NamedTuple

# See RFC 6838 section 4.2 for the restricted-name grammar
_TYPE_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9!#$&^_.-]{0,126}")
_SUBTYPE_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]{0,126}")

# See RFC 7231 section 3.1.1.1 for parameters
_TOKEN = r"[!#$%&'*+.^_`|~0-9A-Za-z-]+"
_QUOTED = r'"(?:[\t\x20\x21\x23-\x5b\x5d-\x7e\x80-\xff]|\\[\t\x20-\x7e\x80-\xff])*"'
_PARAM_RE = re.compile(rf"\s*;\s*({_TOKEN})\s*=\s*({_QUOTED}|{_TOKEN})\s*")
_QUOTED_PAIR_RE = re.compile(r"\\([\t\x20-\x7e\x80-\xff])")


class MediaType(NamedTuple):
    type: str
    subtype: str
    suffix: str | None
    parameters: dict[str, str]


class Parseability(enum.Enum):
    """Whether a response body should be run through a JSON parser"""

    PARSEABLE = "parseable"
    UNPARSEABLE = "unparseable"
    MALFORMED = "malformed"  # the content type itself could not be understood


def parse_media_type(value: str) -> MediaType | None:
    """
    Splits a media type like "application/fhir+json; charset=utf-8" into its pieces.

    The type and subtype are lowercased, and a structured syntax suffix ("json" above) is
    split off of the subtype. Parameter names are lowercased too.

    :returns: the parsed media type, or None if the value is malformed
    """
    type_part, _, param_part = value.partition(";")
    if param_part:
        param_part = ";" + param_part

    pieces = type_part.strip().split("/")
    if len(pieces) != 2:
        return None
    type_, subtype = pieces
    if not _TYPE_RE.fullmatch(type_) or not _SUBTYPE_RE.fullmatch(subtype):
        return None
    type_ = type_.lower()
    subtype = subtype.lower()

    suffix = None
    if "+" in subtype:
        subtype, _, suffix = subtype.rpartition("+")

    parameters = {}
    pos = 0
    while pos < len(param_part):
        match = _PARAM_RE.match(param_part, pos)
        if not match:
            return None
        name, param_value = match.groups()
        if param_value.startswith('"'):
            param_value = _QUOTED_PAIR_RE.sub(r"\1", param_value[1:-1])
        parameters[name.lower()] = param_value
        pos = match.end()

    return MediaType(type_, subtype, suffix, parameters)


def classify_content_type(content_type: str | None) -> Parseability:
    """
    Decides whether a body with the given Content-Type holds JSON we should parse.

    Only application/json and application/fhir+json qualify.
    A missing header counts as unparseable, not malformed.
    """
    if not content_type:
        return Parseability.UNPARSEABLE

    media_type = parse_media_type(content_type)
    if media_type is None:
        return Parseability.MALFORMED

    if media_type.type != "application":
        return Parseability.UNPARSEABLE

    if media_type.subtype == "json":
        return Parseability.PARSEABLE
    if media_type.subtype == "fhir" and media_type.suffix == "json":
        return Parseability.PARSEABLE

    return Parseability.UNPARSEABLE
