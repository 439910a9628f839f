"""Command line surface for the MLM kernel."""

from .main import main

__all__ = ["main"]
