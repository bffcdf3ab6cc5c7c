"""Read-only HTTP query API."""

from augury.api.server import create_app

__all__ = ["create_app"]
