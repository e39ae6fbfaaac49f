"""Shared helpers for cortexview (logging setup, image conversion)."""
