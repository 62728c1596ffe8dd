"""Shared models, configuration, database access and the HTTP API."""
