"""Shared utilities: configuration, logging, errors and types."""
