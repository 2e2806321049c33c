"""Annotations server: durable store and agent tools for page annotations."""

__version__ = "0.1.0"
