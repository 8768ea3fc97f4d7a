"""HTTP API adapter (FastAPI)."""

from wabridge.infrastructure.api.app import create_app

__all__ = ["create_app"]
