"""Read-only market and account queries."""

from .client import InfoClient

__all__ = ["InfoClient"]
