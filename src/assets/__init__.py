"""Commit-scoped asset materialization."""
