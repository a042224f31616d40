"""Thread administration commands."""
