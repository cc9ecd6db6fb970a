"""
Typer CLI for flowtrace.

This module exports the main Typer application that provides the command-line
interface for river network traversal and distance queries.
"""

from .main import app

__all__ = ["app"]
