"""HTTP transport for the batch SQL endpoint.

One call to :meth:`LibSqlClient.execute_batch` is one POST. The request body is
``{"statements": [...]}`` and the response is a JSON array with one entry per
statement (a single object is accepted when the server unwraps a one-statement
answer). Each entry carries either ``results`` or ``error``; the first error
aborts interpretation of the whole batch.
"""

from __future__ import annotations

import json
import time
from collections.abc import Mapping, Sequence
from typing import Any, Union

import requests

from libsql_cli.shared.config import AppConfig, ServerSettings
from libsql_cli.shared.exceptions import (
    AccessDeniedError,
    AuthenticationRequiredError,
    ProtocolError,
    StatementError,
    TransportError,
    ValidationError,
)
from libsql_cli.shared.logging import Logger, get_logger

from .params import build_batch_payload
from .types import ExecutionResult, ParameterKey, Statement

StatementLike = Union[Statement, str]

VERSION_ENDPOINT = "version"
_BODY_PREVIEW = 200


class LibSqlClient:
    """Synchronous client for a SQLite-compatible HTTP service."""

    def __init__(
        self,
        settings: ServerSettings,
        *,
        session: requests.Session | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._settings = settings
        self._session = session if session is not None else requests.Session()
        self._owns_session = session is None
        self._logger = logger or get_logger()
        self._encoder = json.JSONEncoder(ensure_ascii=False, allow_nan=False)
        self._decoder = json.JSONDecoder()

    @classmethod
    def from_config(cls, config: AppConfig, *, logger: Logger | None = None) -> LibSqlClient:
        return cls(config.server, logger=logger)

    @property
    def settings(self) -> ServerSettings:
        return self._settings

    def close(self) -> None:
        if self._owns_session:
            self._session.close()

    def __enter__(self) -> LibSqlClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Execution

    def execute(
        self,
        sql: str,
        params: Mapping[ParameterKey, Any] | Sequence[Any] | None = None,
    ) -> ExecutionResult:
        """Execute one statement; a sequence of params binds positions 1..n."""
        if params is None:
            statement = Statement(sql)
        elif isinstance(params, (str, bytes, bytearray)):
            raise ValidationError(
                "Statement parameters must be a mapping or a sequence of values, not a single string."
            )
        elif isinstance(params, Mapping):
            statement = Statement(sql, dict(params))
        else:
            statement = Statement.positional(sql, *params)
        return self.execute_batch([statement])[0]

    def execute_batch(self, statements: Sequence[StatementLike]) -> list[ExecutionResult]:
        """Send all statements in one request and return one result per statement."""
        batch = [item if isinstance(item, Statement) else Statement(item) for item in statements]
        if not batch:
            raise ValidationError("A batch must contain at least one statement.")

        try:
            body = self._encoder.encode(build_batch_payload(batch)).encode("utf-8")
        except ValueError as exc:
            raise ValidationError(f"Statement parameters cannot be encoded as JSON: {exc}") from exc

        url = self._settings.url
        self._logger.debug(f"POST {url}: {len(batch)} statement(s), {len(body)} bytes")
        for statement in batch:
            self._logger.sql("statement", statement.sql)

        started = time.perf_counter()
        try:
            response = self._session.post(
                url,
                data=body,
                headers=self._headers(json_body=True),
                timeout=self._settings.timeout,
            )
        except requests.Timeout as exc:
            raise TransportError(
                f"Request to {url} timed out after {self._settings.timeout:g}s"
            ) from exc
        except requests.RequestException as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

        with response:
            results = self._read_batch_response(response, batch)

        elapsed_ms = (time.perf_counter() - started) * 1000
        self._logger.debug(f"Batch of {len(batch)} completed in {elapsed_ms:.1f} ms")
        return results

    def server_version(self) -> str:
        """Return the first line of the server's `/version` endpoint."""
        url = self._settings.url.rstrip("/") + "/" + VERSION_ENDPOINT
        self._logger.debug(f"GET {url}")
        try:
            response = self._session.get(
                url,
                headers=self._headers(json_body=False),
                timeout=self._settings.timeout,
            )
        except requests.Timeout as exc:
            raise TransportError(
                f"Request to {url} timed out after {self._settings.timeout:g}s"
            ) from exc
        except requests.RequestException as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

        with response:
            _raise_for_auth(response.status_code)
            text = _body_text(response)
            if not 200 <= response.status_code < 300:
                raise TransportError(
                    f"Server answered HTTP {response.status_code} for {url}: {_preview(text)}"
                )
        lines = text.splitlines()
        return lines[0] if lines else ""

    # ------------------------------------------------------------------
    # Internal helpers

    def _headers(self, *, json_body: bool) -> dict[str, str]:
        headers = {"User-Agent": self._settings.client_id}
        if json_body:
            headers["Content-Type"] = "application/json"
        if self._settings.auth_token:
            headers["Authorization"] = f"Bearer {self._settings.auth_token}"
        return headers

    def _read_batch_response(
        self, response: requests.Response, batch: Sequence[Statement]
    ) -> list[ExecutionResult]:
        status = response.status_code
        _raise_for_auth(status)
        text = _body_text(response)
        try:
            document = self._decoder.decode(text)
        except ValueError as exc:
            if not 200 <= status < 300:
                raise TransportError(f"Server answered HTTP {status}: {_preview(text)}") from exc
            raise ProtocolError(f"Response body is not valid JSON: {exc}") from exc

        if isinstance(document, Mapping):
            entries: list[Any] = [document]
        elif isinstance(document, list):
            entries = document
        else:
            raise ProtocolError(f"Unexpected response document of type {type(document).__name__}.")

        for index, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise ProtocolError(f"Response entry {index + 1} is not an object.")
            error = entry.get("error")
            if error:
                sql = batch[index].sql if index < len(batch) else ""
                raise StatementError(str(error), index=index, sql=sql)

        if not 200 <= status < 300:
            raise TransportError(f"Server answered HTTP {status}: {_preview(text)}")
        if len(entries) != len(batch):
            raise ProtocolError(
                f"Server returned {len(entries)} result(s) for {len(batch)} statement(s)."
            )
        return [ExecutionResult.from_payload(entry.get("results")) for entry in entries]


def _raise_for_auth(status: int) -> None:
    if status == 401:
        raise AuthenticationRequiredError("Authentication required")
    if status == 403:
        raise AccessDeniedError("Access denied")


def _body_text(response: requests.Response) -> str:
    return response.content.decode("utf-8", errors="replace")


def _preview(text: str) -> str:
    cleaned = " ".join((text or "").split())
    if len(cleaned) > _BODY_PREVIEW:
        return cleaned[: _BODY_PREVIEW - 3] + "..."
    return cleaned or "<empty body>"
