"""Adapters between the core engine and concrete payloads or storage."""
