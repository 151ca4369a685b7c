"""Custom exception hierarchy for the oracle monitor."""

from __future__ import annotations


class OracleMonitorError(Exception):
    """Base exception for all oracle monitor errors.

    All custom exceptions in this module inherit from this base class so
    callers can catch monitor-specific failures while keeping the finer
    grained types available for targeted handling.
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, object] | None = None,
    ) -> None:
        """Initialize the exception with a message and optional context.

        Args:
            message: The error message.
            context: Optional context dictionary with additional error information.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return a string representation of the exception."""
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class ConfigError(OracleMonitorError):
    """Base exception for configuration errors.

    Configuration errors are fatal for the affected chain: they are raised
    while a collector is being constructed and propagate out of ``start``.
    """

    def __init__(
        self,
        message: str,
        *,
        chain: str | None = None,
        config_key: str | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        config_context: dict[str, object] = {}
        if chain:
            config_context["chain"] = chain
        if config_key:
            config_context["config_key"] = config_key
        if context:
            config_context.update(context)

        super().__init__(message, context=config_context)
        self.chain = chain
        self.config_key = config_key


class ValidationError(ConfigError):
    """Raised when a packager field fails validation."""

    def __init__(
        self,
        message: str,
        *,
        value: object | None = None,
        expected_type: str | None = None,
        **kwargs: object,
    ) -> None:
        """Initialize the validation error.

        Args:
            message: The error message.
            value: The invalid value.
            expected_type: The expected type.
            **kwargs: Additional arguments passed to ConfigError.
        """
        context = kwargs.pop("context", {}) or {}
        if value is not None:
            context["value"] = value
        if expected_type:
            context["expected_type"] = expected_type
        kwargs["context"] = context
        super().__init__(message, **kwargs)
        self.value = value
        self.expected_type = expected_type


class DuplicateRegistrationError(ConfigError):
    """Raised when a chain is registered twice against the same registry and mode."""


class NoHealthyEndpointError(OracleMonitorError):
    """Raised when every candidate endpoint fails the liveness probe."""

    def __init__(
        self,
        message: str,
        *,
        chain: str | None = None,
        candidates: list[str] | tuple[str, ...] | None = None,
    ) -> None:
        context: dict[str, object] = {"error_kind": "no_healthy_endpoint"}
        if chain:
            context["chain"] = chain
        if candidates is not None:
            context["candidate_count"] = len(candidates)

        super().__init__(message, context=context)
        self.chain = chain
        self.candidates = tuple(candidates or ())


class FetchError(OracleMonitorError):
    """Base exception for a failed oracle state fetch.

    A fetch error skips the current poll cycle; metrics keep their previous values.
    """

    error_kind = "fetch_error"

    def __init__(
        self,
        message: str,
        *,
        chain: str | None = None,
        endpoint: str | None = None,
        operation: str | None = None,
        attempt: int | None = None,
        max_attempts: int | None = None,
        context: dict[str, object] | None = None,
    ) -> None:
        fetch_context: dict[str, object] = {"error_kind": self.error_kind}
        if chain:
            fetch_context["chain"] = chain
        if endpoint:
            fetch_context["endpoint"] = endpoint
        if operation:
            fetch_context["operation"] = operation
        if attempt is not None:
            fetch_context["attempt"] = attempt
        if max_attempts is not None:
            fetch_context["max_attempts"] = max_attempts
        if context:
            fetch_context.update(context)

        super().__init__(message, context=fetch_context)
        self.chain = chain
        self.endpoint = endpoint
        self.operation = operation
        self.attempt = attempt
        self.max_attempts = max_attempts


class UnreachableError(FetchError):
    """Raised on transport failures, timeouts and HTTP error statuses."""

    error_kind = "unreachable"


class DecodeError(FetchError):
    """Raised when a response body cannot be decoded into the expected shape."""

    error_kind = "decode_error"


class PartialDataError(FetchError):
    """Raised when a decoded value falls outside its expected domain."""

    error_kind = "partial_data"


__all__ = [
    "ConfigError",
    "DecodeError",
    "DuplicateRegistrationError",
    "FetchError",
    "NoHealthyEndpointError",
    "OracleMonitorError",
    "PartialDataError",
    "UnreachableError",
    "ValidationError",
]
