"""Hook commands."""
