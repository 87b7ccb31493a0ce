"""Command-line entry point (`animica-vouchers`)."""

from .main import app, get_app

__all__ = ["app", "get_app"]
