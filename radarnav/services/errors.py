"""Errors raised by the external service clients."""

from __future__ import annotations


class ServiceError(RuntimeError):
    """An external HTTP service failed or answered with unusable data."""
