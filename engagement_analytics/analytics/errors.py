"""Error taxonomy for report generation."""

from __future__ import annotations


class AnalyticsError(Exception):
    """Base class for errors surfaced as a single failed report."""


class InvalidRequestError(AnalyticsError, ValueError):
    """The request was rejected before any record was fetched."""


class SourceUnavailableError(AnalyticsError):
    """An event or subscriber source could not be read."""
