"""
Error taxonomy.

Only validation failures, lookup failures, timeouts and total search exhaustion
ever reach the caller. Snap misses, oracle misses and enhancer failures are
recovered where they happen and never surface as one of these.
"""

from __future__ import annotations


class LoopRouteError(Exception):
    """Base class for errors surfaced to API/CLI callers."""

    code = "INTERNAL_ERROR"


class InputValidationError(LoopRouteError, ValueError):
    code = "VALIDATION_ERROR"


class UpstreamLookupError(LoopRouteError):
    """A mandatory stop given as an address could not be resolved."""

    code = "LOOKUP_FAILED"


class SearchExhausted(LoopRouteError):
    """No routable candidate was produced within the configured effort."""

    code = "ROUTE_NOT_FOUND"


class SearchTimeout(LoopRouteError):
    code = "TIMEOUT"


class ProviderConfigError(LoopRouteError):
    """A provider is missing credentials or endpoint configuration."""

    code = "PROVIDER_CONFIG"


class ProviderError(LoopRouteError):
    """An upstream service answered with an unexpected status or payload."""

    code = "PROVIDER_ERROR"


# Never absorbed by the search loops: they abort the whole request.
FATAL_ERRORS: tuple[type[Exception], ...] = (SearchTimeout, ProviderConfigError)
