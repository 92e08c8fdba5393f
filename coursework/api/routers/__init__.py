"""API routers, one per component."""
