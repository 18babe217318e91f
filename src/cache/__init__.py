"""Rendered-document cache: keys, stores, single-flight and manager."""
