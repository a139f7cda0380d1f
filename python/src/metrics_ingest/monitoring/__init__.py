"""Prometheus metrics for the provider read path."""
