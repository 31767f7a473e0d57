"""Protected admin routers."""
