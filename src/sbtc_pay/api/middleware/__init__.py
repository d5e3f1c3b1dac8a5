"""API middleware — admin authentication and request metrics."""
