"""REST API module."""
