"""
Command-line interface for the trimmer package.

This module provides the main CLI entry point of the distribution engine.
"""

from .main import main_cli

__all__ = [
    "main_cli",
]
