"""Shared utilities: logging and secret sanitization."""
