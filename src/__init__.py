"""Adaptive playlist engine application package."""
