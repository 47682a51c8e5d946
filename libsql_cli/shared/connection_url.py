"""Connection URL parsing for the `<prefix>:<dialect>:<server-url>` surface."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from .exceptions import ValidationError

CONNECTION_URL_EXAMPLE = "jdbc:libsql:https://<host>[:<port>][?authToken=<token>]"
CONNECTION_URL_PATTERN = re.compile(
    r"^(?P<prefix>[A-Za-z][\w.-]*):(?P<dialect>[A-Za-z][\w.-]*):(?P<server>[A-Za-z][\w+.-]*://.+)$"
)
BARE_URL_PATTERN = re.compile(r"^[A-Za-z][\w+.-]*://.+$")

TOKEN_PROPERTIES = ("authToken", "auth_token", "password")
_SCHEME_REWRITES = {"libsql": "https", "http": "http", "https": "https"}


@dataclass(frozen=True, slots=True)
class ConnectionTarget:
    """Base URL of the HTTP endpoint plus driver properties taken from the URL."""

    base_url: str
    properties: Mapping[str, str] = field(default_factory=dict)
    dialect: str | None = None

    @property
    def auth_token(self) -> str | None:
        for key in TOKEN_PROPERTIES:
            value = self.properties.get(key)
            if value:
                return value
        return None


def parse_connection_url(url: str) -> ConnectionTarget:
    """Split a connection URL into the HTTP base URL and its driver properties."""

    cleaned = (url or "").strip()
    dialect: str | None = None
    match = CONNECTION_URL_PATTERN.match(cleaned)
    if match:
        server_url = match.group("server")
        dialect = match.group("dialect")
    elif BARE_URL_PATTERN.match(cleaned):
        server_url = cleaned
    else:
        raise ValidationError(
            f"Invalid connection URL: '{url}'. Expected URL format: {CONNECTION_URL_EXAMPLE}"
        )

    parts = urlsplit(server_url)
    scheme = _SCHEME_REWRITES.get(parts.scheme.lower())
    if scheme is None or not parts.netloc:
        raise ValidationError(
            f"Unsupported server URL '{server_url}'; expected an http, https, or libsql URL."
        )

    properties = dict(parse_qsl(parts.query, keep_blank_values=True))
    base_url = urlunsplit((scheme, parts.netloc, parts.path, "", ""))
    return ConnectionTarget(base_url=base_url, properties=properties, dialect=dialect)
