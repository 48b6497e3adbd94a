"""Data models for resource nodes, cleanup state and lifecycle reports."""
