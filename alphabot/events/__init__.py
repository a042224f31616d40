"""Thread-log event handlers."""
