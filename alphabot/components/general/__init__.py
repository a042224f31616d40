"""General commands."""
