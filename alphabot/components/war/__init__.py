"""War commands."""
