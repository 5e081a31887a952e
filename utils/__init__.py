"""Shared utilities: configuration, logging, schemas, store and sink access."""
