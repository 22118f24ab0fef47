"""API routers for the data service."""
