"""Schema migrations for the followdeck database."""

from .runner import MigrationRunner

__all__ = ["MigrationRunner"]
