"""Exceptions and warnings raised while loading telemetry and video metadata."""

from __future__ import annotations


class RideOverlayError(ValueError):
    """Base class for load-time failures."""


class MalformedInputError(RideOverlayError):
    """A raw point is missing a required numeric field (lat/lon/time)."""


class InsufficientDataError(RideOverlayError):
    """Fewer than two usable points remain after normalization."""


class MissingMetadataError(RideOverlayError):
    """Video metadata lacks creation_time / pts_times or they do not parse."""


class ClockMismatchWarning(UserWarning):
    """Track start and video start are further apart than the configured threshold."""
