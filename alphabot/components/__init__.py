"""Bundled command plugins, one module per command, grouped by category."""
