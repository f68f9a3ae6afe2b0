"""Shared helpers: logging setup and small py-cord utilities."""
