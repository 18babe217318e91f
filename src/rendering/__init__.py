"""Chunk renderer collaborators."""
