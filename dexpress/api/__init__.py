"""dexpress HTTP API — FastAPI application factory, routes, and error mapping."""

from dexpress.api.app import create_app

__all__ = ["create_app"]
