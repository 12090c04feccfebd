"""Prometheus exporter for TeamCity build statistics."""

__version__ = "0.1.0"
