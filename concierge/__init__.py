"""Rental concierge: a streaming, tool-using chat agent for the rental store."""

__version__ = "0.1.0"
