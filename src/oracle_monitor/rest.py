"""REST helpers: retries, error categorization and JSON decoding."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Protocol, TypeVar, runtime_checkable

import requests

from .exceptions import DecodeError, FetchError, UnreachableError
from .logging import get_logger

LOGGER = get_logger(__name__)

REST_INITIAL_BACKOFF_SECONDS = 0.5
REST_MAX_BACKOFF_SECONDS = 5.0

DEFAULT_HEADERS = {"Accept": "application/json"}

T = TypeVar("T")


@runtime_checkable
class ResponseProtocol(Protocol):
    status_code: int

    def json(self) -> Any: ...


@runtime_checkable
class HttpSessionProtocol(Protocol):
    """The subset of ``requests.Session`` the monitor relies on."""

    def get(
        self,
        url: str,
        *,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> ResponseProtocol: ...


def _categorize_error(exception: BaseException) -> str:
    """Categorize a transport exception into an error reason for logs.

    Returns:
        One of "timeout", "connection_error", "http_status", "request_error" or "unknown".
    """
    if isinstance(exception, requests.exceptions.Timeout):
        return "timeout"
    if isinstance(exception, requests.exceptions.ConnectionError):
        return "connection_error"
    if isinstance(exception, requests.exceptions.HTTPError):
        return "http_status"
    if isinstance(exception, requests.exceptions.RequestException):
        return "request_error"
    if isinstance(exception, TimeoutError):
        return "timeout"
    if isinstance(exception, (ConnectionError, OSError)):
        return "connection_error"

    return "unknown"


def execute_with_retries(
    operation: Callable[[], T],
    description: str,
    *,
    chain: str,
    max_attempts: int,
    log_level: int = logging.WARNING,
    context_extra: dict[str, Any] | None = None,
) -> T:
    """Execute a REST operation, retrying unreachable failures with exponential backoff.

    Decode and partial-data failures are deterministic for a given response, so
    they are raised immediately without retrying.

    Args:
        operation: The REST operation to execute.
        description: Human-readable description of the operation.
        chain: Chain name used in log messages.
        max_attempts: Maximum number of attempts.
        log_level: Log level for retry messages.
        context_extra: Additional context for logging.

    Returns:
        The result of the operation.

    Raises:
        FetchError: The last error raised if all attempts fail.
    """
    attempt_limit = max(max_attempts, 1)
    last_exception: FetchError | None = None

    for attempt in range(1, attempt_limit + 1):
        try:
            return operation()
        except UnreachableError as exc:
            exc.attempt = attempt
            exc.max_attempts = attempt_limit
            exc.context.update({"attempt": attempt, "max_attempts": attempt_limit})
            last_exception = exc

            log_extra = dict(context_extra or {})
            log_extra["error_kind"] = exc.error_kind

            LOGGER.log(
                log_level,
                "REST operation '%s' failed for %s (attempt %s/%s).",
                description,
                chain,
                attempt,
                attempt_limit,
                extra=log_extra,
            )

            if attempt < attempt_limit:
                backoff_seconds = min(
                    REST_INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1)),
                    REST_MAX_BACKOFF_SECONDS,
                )

                time.sleep(backoff_seconds)

    if last_exception is not None:
        raise last_exception

    raise RuntimeError(f"REST operation '{description}' failed without raising an exception.")


class RestClient:
    """Wrapper around an HTTP session that centralizes retries and decoding."""

    def __init__(
        self,
        session: HttpSessionProtocol,
        chain: str,
        *,
        timeout_seconds: float,
        max_attempts: int,
    ) -> None:
        self._session = session
        self._chain = chain
        self._timeout_seconds = timeout_seconds
        self._max_attempts = max_attempts

    @property
    def session(self) -> HttpSessionProtocol:
        return self._session

    @property
    def chain(self) -> str:
        return self._chain

    def get_json(
        self,
        endpoint: str,
        path: str,
        *,
        operation: str,
        max_attempts: int | None = None,
        timeout_seconds: float | None = None,
        log_level: int = logging.WARNING,
        extra: dict[str, Any] | None = None,
    ) -> Any:
        """GET ``endpoint + path`` and return the decoded JSON body.

        Raises:
            UnreachableError: On transport errors, timeouts and HTTP error statuses.
            DecodeError: If the body is not valid JSON.
        """
        url = f"{endpoint.rstrip('/')}{path}"
        timeout = timeout_seconds if timeout_seconds is not None else self._timeout_seconds

        return execute_with_retries(
            lambda: self._request(url, endpoint=endpoint, operation=operation, timeout=timeout),
            f"GET {path}",
            chain=self._chain,
            max_attempts=max_attempts if max_attempts is not None else self._max_attempts,
            log_level=log_level,
            context_extra=extra,
        )

    def _request(self, url: str, *, endpoint: str, operation: str, timeout: float) -> Any:
        try:
            response = self._session.get(url, timeout=timeout, headers=DEFAULT_HEADERS)
        except (requests.exceptions.RequestException, OSError) as exc:
            raise UnreachableError(
                f"Request to {url} failed: {exc}",
                chain=self._chain,
                endpoint=endpoint,
                operation=operation,
                context={"reason": _categorize_error(exc), "original_exception": type(exc).__name__},
            ) from exc

        status_code = response.status_code

        if status_code >= 400:
            raise UnreachableError(
                f"Request to {url} returned HTTP {status_code}.",
                chain=self._chain,
                endpoint=endpoint,
                operation=operation,
                context={"reason": "http_status", "status_code": status_code},
            )

        try:
            return response.json()
        except ValueError as exc:
            raise DecodeError(
                f"Response from {url} is not valid JSON.",
                chain=self._chain,
                endpoint=endpoint,
                operation=operation,
            ) from exc


def create_http_session() -> requests.Session:
    """Create a ``requests`` session reused across one collector's poll cycles."""

    session = requests.Session()
    session.headers.update(DEFAULT_HEADERS)

    return session


__all__ = [
    "DEFAULT_HEADERS",
    "HttpSessionProtocol",
    "REST_INITIAL_BACKOFF_SECONDS",
    "REST_MAX_BACKOFF_SECONDS",
    "ResponseProtocol",
    "RestClient",
    "_categorize_error",
    "create_http_session",
    "execute_with_retries",
]
