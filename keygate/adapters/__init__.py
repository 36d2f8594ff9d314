"""Adapters for external collaborators and shared state."""
