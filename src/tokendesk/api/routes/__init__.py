"""Public, read-only routes."""
