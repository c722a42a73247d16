"""Prometheus exporter for Mesos master and agent statistics."""

__version__ = "0.1.0"
