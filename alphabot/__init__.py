"""Alphabot: Messenger automation bot with a plugin command/event system."""

__version__ = "2.0.0"
