from __future__ import annotations

import asyncio
import math
import socket

import aiohttp

from prompt_enhancer.core.models import ErrorClassification, ErrorKind, RawFailure

"""
Error taxonomy and classification.

Failures are reduced to a ``RawFailure`` (message + optional code) at the
transport edge and then mapped onto a fixed set of kinds by ordered
substring/code rules. The first matching rule wins.
"""

CREDENTIAL_MISSING_CODE = "CREDENTIAL_MISSING"


class EnhancerError(Exception):
    """Base class for errors raised by prompt_enhancer."""

    code: str | None = None


class CredentialMissingError(EnhancerError):
    """No API key is configured for the provider."""

    code = CREDENTIAL_MISSING_CODE

    def __init__(self, message: str = "API key is not configured") -> None:
        super().__init__(message)


class APIError(EnhancerError):
    """
    The provider answered with an error payload.

    Attributes:
        message (str): Error message reported by the provider
        status (int | None): HTTP status code
        code (str | None): Provider error code or type (e.g. "insufficient_quota")
    """

    def __init__(self, message: str, status: int | None = None, code: str | None = None) -> None:
        self.message = message
        self.status = status
        self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        if self.code and str(self.code) not in self.message:
            return f"{self.message} ({self.code})"
        return self.message


class EmptyResponseError(EnhancerError):
    """The provider returned a completion without any text."""

    def __init__(self, message: str = "Empty response from the API") -> None:
        super().__init__(message)


SUGGESTIONS: dict[ErrorKind, str] = {
    ErrorKind.CREDENTIAL_MISSING: "Please configure your OpenAI API key",
    ErrorKind.CREDENTIAL_INVALID: "Please check your OpenAI API key in settings",
    ErrorKind.NETWORK_UNREACHABLE: "Check your internet connection and try again",
    ErrorKind.TIMEOUT: "Try increasing the timeout in settings or check your internet connection",
    ErrorKind.QUOTA_EXCEEDED: "Check your OpenAI account usage and billing settings",
    ErrorKind.RATE_LIMITED: "Please wait a moment before trying again",
    ErrorKind.MALFORMED_REQUEST: "Please check your settings and try again",
    ErrorKind.UNKNOWN: "Please try again or contact support if the issue persists",
}

RETRYABLE: dict[ErrorKind, bool] = {
    ErrorKind.CREDENTIAL_MISSING: False,
    ErrorKind.CREDENTIAL_INVALID: False,
    ErrorKind.NETWORK_UNREACHABLE: True,
    ErrorKind.TIMEOUT: True,
    ErrorKind.QUOTA_EXCEEDED: False,
    ErrorKind.RATE_LIMITED: True,
    ErrorKind.MALFORMED_REQUEST: False,
    ErrorKind.UNKNOWN: True,
}

# (kind, message keywords, codes), checked in order
_RULES: list[tuple[ErrorKind, tuple[str, ...], tuple[str, ...]]] = [
    (ErrorKind.CREDENTIAL_MISSING, (), (CREDENTIAL_MISSING_CODE,)),
    (ErrorKind.CREDENTIAL_INVALID, ("api key", "unauthorized", "credential"), ()),
    (ErrorKind.TIMEOUT, ("timeout",), ("ETIMEDOUT",)),
    (ErrorKind.QUOTA_EXCEEDED, ("quota", "billing", "insufficient_quota"), ()),
    (ErrorKind.RATE_LIMITED, ("rate limit", "too many requests"), ()),
    (ErrorKind.NETWORK_UNREACHABLE, ("network",), ("ENOTFOUND", "ECONNREFUSED")),
    (ErrorKind.MALFORMED_REQUEST, ("invalid_request", "bad request"), ()),
]


def _make(kind: ErrorKind, message: str, wait_time_ms: int | None = None) -> ErrorClassification:
    return ErrorClassification(
        kind=kind,
        retryable=RETRYABLE[kind],
        suggestion=SUGGESTIONS[kind],
        message=message,
        wait_time_ms=wait_time_ms,
    )


def classify_error(failure: RawFailure) -> ErrorClassification:
    """
    Map a raw failure onto the error taxonomy.

    Keywords are matched case-insensitively against the message; codes are
    matched exactly. Unrecognized failures are ``UNKNOWN`` and retryable.

    Args:
        failure (RawFailure): Message and optional code of the failure

    Returns:
        ErrorClassification: The first matching taxonomy entry

    Example:
        >>> classify_error(RawFailure("connect failed", code="ENOTFOUND")).kind
        <ErrorKind.NETWORK_UNREACHABLE: 'network-unreachable'>
    """
    message = failure.message.lower()
    for kind, keywords, codes in _RULES:
        if failure.code is not None and failure.code in codes:
            return _make(kind, failure.message)
        if any(keyword in message for keyword in keywords):
            return _make(kind, failure.message)
    return _make(ErrorKind.UNKNOWN, failure.message)


def rate_limit_exceeded(wait_time_ms: int) -> ErrorClassification:
    """Classification for a request refused by the client-side rate limiter."""
    seconds = math.ceil(max(0, wait_time_ms) / 1000)
    return _make(
        ErrorKind.RATE_LIMITED,
        f"Rate limit exceeded, retry in {seconds}s",
        wait_time_ms=max(0, wait_time_ms),
    )


def raw_failure_from_exception(error: BaseException) -> RawFailure:
    """
    Reduce an exception raised by a transport to a ``RawFailure``.

    Args:
        error (BaseException): Exception raised by the operation

    Returns:
        RawFailure: Message plus a normalized code where one can be derived
    """
    message = str(error) or type(error).__name__

    if isinstance(error, (asyncio.TimeoutError, TimeoutError, socket.timeout)):
        return RawFailure(message=f"Request timeout: {message}", code="ETIMEDOUT")
    if isinstance(error, aiohttp.ClientConnectorError):
        if isinstance(error.os_error, socket.gaierror):
            return RawFailure(message=message, code="ENOTFOUND")
        return RawFailure(message=message, code="ECONNREFUSED")
    if isinstance(error, ConnectionRefusedError):
        return RawFailure(message=message, code="ECONNREFUSED")
    if isinstance(error, aiohttp.ClientConnectionError):
        return RawFailure(message=f"network error: {message}")
    if isinstance(error, EnhancerError):
        return RawFailure(message=message, code=error.code)

    code = getattr(error, "code", None)
    return RawFailure(message=message, code=code if isinstance(code, str) else None)


def classify_exception(error: BaseException) -> ErrorClassification:
    """Classify an exception raised by an operation."""
    return classify_error(raw_failure_from_exception(error))
