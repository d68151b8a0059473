"""HTTP API."""

from .app import app, get_pipeline

__all__ = ["app", "get_pipeline"]
