"""Integrations with the datastore, object store, and magic-link service."""
