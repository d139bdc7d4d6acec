"""Completion, vector and search backends."""
