"""Error types returned by the snowy request executor.

Every failure is delivered as a value inside ``Err``. Callers branch on
``error.kind`` rather than on the concrete class when they only need to know
whether the server answered with an unacceptable status.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Tag identifying which stage of the pipeline failed."""

    REQUEST_CONSTRUCTION = "request_construction"
    BODY_ENCODING = "body_encoding"
    TRANSPORT = "transport"
    RESPONSE_READ = "response_read"
    STATUS = "status"
    DECODE = "decode"


class HttpClientError(Exception):
    """Base class for every error produced by the client."""

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, *, cause: BaseException | None = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class RequestConstructionError(HttpClientError):
    """The request could not be built (malformed URL or method)."""

    kind = ErrorKind.REQUEST_CONSTRUCTION


class BodyEncodingError(HttpClientError):
    """The JSON or form body could not be serialized."""

    kind = ErrorKind.BODY_ENCODING


class TransportError(HttpClientError):
    """Connection, TLS or protocol failure reported by the transport."""

    kind = ErrorKind.TRANSPORT


class RequestTimeoutError(TransportError):
    """The call ran past its timeout or deadline."""


class RequestCancelledError(TransportError):
    """The call was cancelled through its CancelToken."""


class ResponseReadError(HttpClientError):
    """The body of an unacceptable response could not be read."""

    kind = ErrorKind.RESPONSE_READ


class DecodeError(HttpClientError):
    """An acceptable response body did not decode into the declared type."""

    kind = ErrorKind.DECODE


class StatusError(HttpClientError):
    """The server answered with a status outside the acceptable set.

    Attributes:
        status_code: HTTP status returned by the server.
        message: Always ``"unexpected status code: <status_code>"``.
        response: The body decoded as a JSON object, or the raw body text
            when it is not a JSON object.
    """

    kind = ErrorKind.STATUS

    def __init__(self, status_code: int, response: Any):
        super().__init__(f"unexpected status code: {status_code}")
        self.status_code = status_code
        self.response = response

    def __str__(self) -> str:
        return f"message: {self.message}"

    def __repr__(self) -> str:
        return (
            f"StatusError(status_code={self.status_code!r}, "
            f"response={self.response!r})"
        )
