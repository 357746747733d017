"""Logging and metrics for opswatch."""
