"""Typed JSON request executor.

All five verbs funnel into one pipeline: apply config defaults, compose
headers, query string and body, dispatch through a pooled session, classify
the status and decode the body into the caller's declared type. Failures
are returned as ``Err`` values; nothing is retried.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Mapping, TypeVar

import requests
from pydantic import ValidationError
from pydantic.errors import PydanticSchemaGenerationError
from urllib3.exceptions import ReadTimeoutError

from .cancel import CancelToken
from .codec import decode_error_body, decode_json, is_empty_body
from .config import Config
from .errors import (
    DecodeError,
    HttpClientError,
    RequestCancelledError,
    RequestConstructionError,
    RequestTimeoutError,
    ResponseReadError,
    StatusError,
    TransportError,
)
from .payload import RequestData, apply_query_params, resolve_body
from .pool import ClientPool, PooledClient
from .types import Err, Ok, Result, TypedResponse

T = TypeVar("T")

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "Accept"
CONTENT_TYPE_HEADER = "Content-Type"
JSON_MEDIA_TYPE = "application/json"
READ_CHUNK_SIZE = 64 * 1024

_CONSTRUCTION_ERRORS = (
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.InvalidURL,
    requests.exceptions.InvalidHeader,
)


class _CallDeadline:
    """Overall time budget of one call, merged with its CancelToken."""

    def __init__(self, timeout_seconds: float, token: CancelToken | None):
        self._expires_at = time.monotonic() + timeout_seconds
        self._token = token
        if token is not None and token.deadline is not None:
            self._expires_at = min(self._expires_at, token.deadline)

    def remaining(self) -> float:
        return max(0.0, self._expires_at - time.monotonic())

    @property
    def cancelled(self) -> bool:
        return self._token is not None and self._token.cancelled

    def check(self) -> None:
        """Raise when the call was cancelled or ran out of time."""
        if self.cancelled:
            raise RequestCancelledError("request cancelled")
        if self.remaining() <= 0:
            raise RequestTimeoutError("request deadline exceeded")


@dataclass
class _Exchange:
    """Outcome of sending one request and reading its body."""

    wake: threading.Event = field(default_factory=threading.Event)
    finished: bool = False
    response: requests.Response | None = None
    raw: bytes = b""
    error: HttpClientError | None = None


def _is_timeout(exc: requests.exceptions.RequestException) -> bool:
    if isinstance(exc, requests.exceptions.Timeout):
        return True
    # iter_content re-raises urllib3 read timeouts as ConnectionError.
    return bool(exc.args) and isinstance(exc.args[0], ReadTimeoutError)


def _with_header(
    headers: dict[str, str], name: str, value: str
) -> dict[str, str]:
    """Set ``name`` to ``value``, dropping other casings of the same name."""
    lowered = name.lower()
    for key in [key for key in headers if key.lower() == lowered]:
        del headers[key]
    headers[name] = value
    return headers


class JsonClient:
    """Typed JSON HTTP client.

    Example:
        client = JsonClient()
        result = client.get("https://api.example.com/users/1", User)
        if result.ok:
            user = result.value.data

    Args:
        pool: Client pool to draw sessions from. A private pool is created
            when omitted; pass a shared one to reuse connections across
            JsonClient instances.
    """

    def __init__(self, pool: ClientPool | None = None) -> None:
        self._owns_pool = pool is None
        self.pool = pool if pool is not None else ClientPool()

    def close(self) -> None:
        """Close the pool if this client created it."""
        if self._owns_pool:
            self.pool.close()

    def __enter__(self) -> JsonClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _build_meta(
        self,
        method: str,
        request_url: str,
        response: requests.Response | None,
        timeout: tuple[float, float] | None,
        started: float,
        final_error: str | None = None,
    ) -> dict[str, Any]:
        """Construct metadata dictionary from the request and response."""
        meta: dict[str, Any] = {}
        meta["method"] = method
        meta["url"] = request_url
        meta["timeout_s"] = timeout
        meta["elapsed_s"] = time.monotonic() - started
        if response is not None:
            meta["status_code"] = response.status_code
            meta["reason"] = response.reason
        if final_error is not None:
            meta["final_error"] = final_error
        return meta

    def _map_transport_exception(
        self, exc: requests.exceptions.RequestException
    ) -> HttpClientError:
        """Map requests exceptions to client errors."""
        if isinstance(exc, _CONSTRUCTION_ERRORS):
            return RequestConstructionError(
                f"creating request: {exc}", cause=exc
            )
        if _is_timeout(exc):
            return RequestTimeoutError(f"executing request: {exc}", cause=exc)
        return TransportError(f"executing request: {exc}", cause=exc)

    def _read_body(
        self,
        response: requests.Response,
        config: Config,
        deadline: _CallDeadline,
    ) -> bytes:
        """Read the whole body, checking the deadline between chunks.

        Raises:
            RequestCancelledError: The token was cancelled during the read.
            RequestTimeoutError: The socket or the call deadline timed out.
            DecodeError: The read of an acceptable response failed.
            ResponseReadError: The read of an error response failed.
        """
        content = bytearray()
        try:
            for chunk in response.iter_content(chunk_size=READ_CHUNK_SIZE):
                deadline.check()
                if chunk:
                    content.extend(chunk)
        except requests.exceptions.RequestException as exc:
            if deadline.cancelled:
                raise RequestCancelledError(
                    "request cancelled", cause=exc
                ) from exc
            if _is_timeout(exc) or deadline.remaining() <= 0:
                raise RequestTimeoutError(
                    f"reading response body: {exc}", cause=exc
                ) from exc
            if config.is_acceptable(response.status_code):
                raise DecodeError(
                    f"decoding response body: {exc}", cause=exc
                ) from exc
            raise ResponseReadError(
                f"reading error response body: {exc}", cause=exc
            ) from exc
        deadline.check()
        return bytes(content)

    def _transfer(
        self,
        exchange: _Exchange,
        client: PooledClient,
        prepared: requests.PreparedRequest,
        timeout: tuple[float, float],
        config: Config,
        deadline: _CallDeadline,
    ) -> None:
        """Send the request and read its body into ``exchange``."""
        try:
            try:
                response = client.send(prepared, timeout)
            except requests.exceptions.RequestException as exc:
                if deadline.cancelled:
                    raise RequestCancelledError(
                        "request cancelled", cause=exc
                    ) from exc
                raise self._map_transport_exception(exc) from exc
            exchange.response = response
            try:
                exchange.raw = self._read_body(response, config, deadline)
            finally:
                response.close()
        except HttpClientError as exc:
            exchange.error = exc
        finally:
            exchange.finished = True
            exchange.wake.set()

    def _transfer_cancellable(
        self,
        exchange: _Exchange,
        token: CancelToken,
        deadline: _CallDeadline,
        *args: Any,
    ) -> None:
        """Run ``_transfer`` on a helper thread and wait for it.

        The wait ends when the transfer finishes, the token is cancelled or
        the call deadline passes. An abandoned transfer keeps running in the
        background and closes its own response.
        """
        wake = exchange.wake.set
        token.add_callback(wake)
        try:
            worker = threading.Thread(
                target=self._transfer,
                args=(exchange, *args, deadline),
                name="snowy-transfer",
                daemon=True,
            )
            worker.start()
            exchange.wake.wait(deadline.remaining())
        finally:
            token.remove_callback(wake)
        if token.cancelled:
            raise RequestCancelledError("request cancelled")
        if not exchange.finished:
            raise RequestTimeoutError("request deadline exceeded")

    def _handle_response(
        self,
        response: requests.Response,
        raw: bytes,
        response_type: type[T],
        config: Config,
    ) -> TypedResponse[T]:
        """Classify the status and decode the body.

        Raises:
            StatusError: The status is not acceptable.
            DecodeError: The body does not match ``response_type``.
        """
        status_code = response.status_code
        headers = response.headers

        if not config.is_acceptable(status_code):
            raise StatusError(status_code, decode_error_body(raw))

        if is_empty_body(raw):
            return TypedResponse(
                status_code=status_code, data=None, headers=headers
            )

        try:
            data = decode_json(raw, response_type)
        except (ValidationError, PydanticSchemaGenerationError) as exc:
            raise DecodeError(
                f"decoding response body: {exc}", cause=exc
            ) from exc
        return TypedResponse(
            status_code=status_code, data=data, headers=headers
        )

    def _request(
        self,
        method: str,
        url: str,
        response_type: type[T],
        *,
        config: Config | None,
        headers: Mapping[str, str] | None,
        data: RequestData | None,
        send_body: bool,
    ) -> Result[TypedResponse[T], HttpClientError]:
        """Run the request pipeline once and wrap the outcome."""
        started = time.monotonic()
        effective = (config or Config()).with_defaults()
        data = data or RequestData()
        request_url = apply_query_params(url, data.query_params)
        request_headers = dict(headers or {})
        timeout: tuple[float, float] | None = None
        exchange = _Exchange()

        try:
            body: bytes | None = None
            if send_body:
                resolved = resolve_body(data)
                body = resolved.content
                if resolved.content_type is not None:
                    _with_header(
                        request_headers,
                        CONTENT_TYPE_HEADER,
                        resolved.content_type,
                    )
            _with_header(request_headers, ACCEPT_HEADER, JSON_MEDIA_TYPE)

            deadline = _CallDeadline(
                effective.timeout_seconds, effective.cancel_token
            )
            deadline.check()

            client: PooledClient = self.pool.get_client(effective)
            timeout = client.resolve_timeout(deadline.remaining())
            try:
                prepared = client.prepare(
                    method, request_url, request_headers, body
                )
            except (requests.exceptions.RequestException, ValueError) as exc:
                raise RequestConstructionError(
                    f"creating request: {exc}", cause=exc
                ) from exc

            logger.debug("%s %s timeout=%s", method, request_url, timeout)
            token = effective.cancel_token
            if token is None:
                self._transfer(
                    exchange, client, prepared, timeout, effective, deadline
                )
            else:
                self._transfer_cancellable(
                    exchange,
                    token,
                    deadline,
                    client,
                    prepared,
                    timeout,
                    effective,
                )
            if exchange.error is not None:
                raise exchange.error
            assert exchange.response is not None
            typed = self._handle_response(
                exchange.response, exchange.raw, response_type, effective
            )
        except HttpClientError as exc:
            response = exchange.response if exchange.finished else None
            final_error = type(exc.cause or exc).__name__
            logger.debug(
                "%s %s failed: %s (%s)", method, request_url, exc, final_error
            )
            return Err(
                exc,
                meta=self._build_meta(
                    method,
                    request_url,
                    response,
                    timeout,
                    started,
                    final_error=final_error,
                ),
            )

        return Ok(
            typed,
            meta=self._build_meta(
                method, request_url, exchange.response, timeout, started
            ),
        )

    def get(
        self,
        url: str,
        response_type: type[T],
        *,
        config: Config | None = None,
        headers: Mapping[str, str] | None = None,
        query: RequestData | None = None,
    ) -> Result[TypedResponse[T], HttpClientError]:
        """Perform an HTTP GET request.

        Args:
            url: Absolute URL to request.
            response_type: Type the JSON body is decoded into.
            config: Timeouts, pool limits, cancellation and extra acceptable
                status codes. Defaults apply to zero-valued fields.
            headers: Per-request headers; ``Accept`` is always JSON.
            query: Only ``query_params`` is used.

        Returns:
            Result containing a TypedResponse on success, or an error.
        """
        return self._request(
            "GET",
            url,
            response_type,
            config=config,
            headers=headers,
            data=query,
            send_body=False,
        )

    def delete(
        self,
        url: str,
        response_type: type[T],
        *,
        config: Config | None = None,
        headers: Mapping[str, str] | None = None,
        query: RequestData | None = None,
    ) -> Result[TypedResponse[T], HttpClientError]:
        """Perform an HTTP DELETE request. Arguments match ``get``."""
        return self._request(
            "DELETE",
            url,
            response_type,
            config=config,
            headers=headers,
            data=query,
            send_body=False,
        )

    def post(
        self,
        url: str,
        response_type: type[T],
        *,
        config: Config | None = None,
        headers: Mapping[str, str] | None = None,
        body: RequestData | None = None,
    ) -> Result[TypedResponse[T], HttpClientError]:
        """Perform an HTTP POST request.

        Args:
            url: Absolute URL to request.
            response_type: Type the JSON body is decoded into.
            config: See ``get``.
            headers: Per-request headers; ``Content-Type`` follows the body.
            body: JSON or form payload plus optional query parameters. JSON
                wins when both payload kinds are set.

        Returns:
            Result containing a TypedResponse on success, or an error.
        """
        return self._request(
            "POST",
            url,
            response_type,
            config=config,
            headers=headers,
            data=body,
            send_body=True,
        )

    def put(
        self,
        url: str,
        response_type: type[T],
        *,
        config: Config | None = None,
        headers: Mapping[str, str] | None = None,
        body: RequestData | None = None,
    ) -> Result[TypedResponse[T], HttpClientError]:
        """Perform an HTTP PUT request. Arguments match ``post``."""
        return self._request(
            "PUT",
            url,
            response_type,
            config=config,
            headers=headers,
            data=body,
            send_body=True,
        )

    def patch(
        self,
        url: str,
        response_type: type[T],
        *,
        config: Config | None = None,
        headers: Mapping[str, str] | None = None,
        body: RequestData | None = None,
    ) -> Result[TypedResponse[T], HttpClientError]:
        """Perform an HTTP PATCH request. Arguments match ``post``."""
        return self._request(
            "PATCH",
            url,
            response_type,
            config=config,
            headers=headers,
            data=body,
            send_body=True,
        )
