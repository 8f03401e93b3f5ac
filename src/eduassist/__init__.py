"""Streaming, tool-calling chat gateway for parents."""

__version__ = "0.1.0"
