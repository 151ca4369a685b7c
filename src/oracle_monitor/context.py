"""Runtime dependency container for wiring settings and HTTP session factories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .rest import HttpSessionProtocol, RestClient, create_http_session
from .settings import AppSettings, get_settings


@dataclass(slots=True)
class ApplicationContext:
    """Bundle of services required while collectors are running."""

    settings: AppSettings

    session_factory: Callable[[], HttpSessionProtocol]

    def create_rest_client(self, chain: str) -> RestClient:
        """Construct a REST client with its own session for one chain collector."""

        poller = self.settings.poller

        return RestClient(
            self.session_factory(),
            chain,
            timeout_seconds=poller.rest_request_timeout_seconds,
            max_attempts=poller.rest_max_retries,
        )


def create_default_context() -> ApplicationContext:
    """Build an application context from environment settings."""

    return ApplicationContext(
        settings=get_settings(),
        session_factory=create_http_session,
    )


_APPLICATION_CONTEXT: ApplicationContext | None = None


def get_application_context() -> ApplicationContext:
    """Return the current application context, creating one when absent."""

    global _APPLICATION_CONTEXT

    if _APPLICATION_CONTEXT is None:
        _APPLICATION_CONTEXT = create_default_context()

    return _APPLICATION_CONTEXT


def set_application_context(context: ApplicationContext | None) -> None:
    """Replace the globally cached application context."""

    global _APPLICATION_CONTEXT

    _APPLICATION_CONTEXT = context


def reset_application_context() -> None:
    """Clear the cached context so the next access rebuilds dependencies."""

    set_application_context(None)


__all__ = [
    "ApplicationContext",
    "create_default_context",
    "get_application_context",
    "reset_application_context",
    "set_application_context",
]
