"""
CLI module - command-line interface to the knowledge store.
"""

from personal_kb.cli.commands import build_parser, main

__all__ = ["build_parser", "main"]
