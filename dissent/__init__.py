"""Dissent: contradiction mining for a personal knowledge base."""

__version__ = "0.1.0"
