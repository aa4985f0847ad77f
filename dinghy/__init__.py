"""Dependency tracking for pipeline definition files, with memory, Redis and SQL stores."""

__version__ = "0.1.0"