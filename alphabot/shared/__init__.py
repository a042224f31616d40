"""Shared infrastructure for the bot process and the dashboard API."""
