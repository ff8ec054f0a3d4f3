"""Prometheus exporter for MultiChain node statistics."""

__version__ = "0.1.0"
