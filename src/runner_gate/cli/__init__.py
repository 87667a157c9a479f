"""Command-line interface for runner-gate.

Provides the hook commands the runner invokes before and around each job.
"""

from .main import cli, main

__all__ = ["cli", "main"]
