"""Read-only access to git snapshots."""
