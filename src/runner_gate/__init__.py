"""runner-gate: pre-job security hooks for self-hosted CI runners."""

__version__ = "0.1.0"
