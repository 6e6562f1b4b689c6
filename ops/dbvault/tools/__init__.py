"""
CLI tools for dbvault administration.

This module provides command-line tools for:
- backup / cleanup / verify: run scheduled operations by hand
- restore: rebuild the live database from a remote backup
- list / orphans / status: inspect the remote store

Invariants:
    - Tools work without a running daemon
    - All operations are logged for audit
"""

from .cli import build_parser, main, run_command

__all__ = ["build_parser", "main", "run_command"]
