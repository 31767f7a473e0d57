"""HTTP API for the token desk."""
