"""quartocache: commit-addressed rendering cache for Quarto documents."""
