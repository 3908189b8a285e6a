"""Command line interface for the playlist engine."""
