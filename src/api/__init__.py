"""Public API facade and request/response models."""
