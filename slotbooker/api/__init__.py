"""
HTTP layer - FastAPI application exposing availability and booking.
"""

from .app import create_app

__all__ = ["create_app"]
