"""Error types for nba-picks flows."""

from __future__ import annotations


class PicksError(RuntimeError):
    """Base error for nba-picks operations.

    ``status`` is the HTTP-equivalent status class surfaced in response envelopes.
    """

    status = 500


class UpstreamUnavailable(PicksError):
    """Raised when a schedule/odds/form fetch fails or times out."""

    status = 502


class OddsAPIError(UpstreamUnavailable):
    """Raised on Odds API failures."""


class InvalidDateError(PicksError):
    """Raised when a date parameter is neither YYYYMMDD nor YYYY-MM-DD."""

    status = 400


class UnauthorizedError(PicksError):
    """Raised when no caller identity is available."""

    status = 401


class EntitlementError(PicksError):
    """Raised when the caller is not entitled to the requested operation."""

    status = 403


class GameNotFoundError(PicksError):
    """Raised when a game id cannot be found in any schedule source."""

    status = 404


class CLIError(PicksError):
    """User-facing CLI error."""

    status = 400
