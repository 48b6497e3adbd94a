"""Declarative knowledge base stack definitions."""
