"""Accounting and risk core for a multi-asset lending market."""

__version__ = "0.1.0"
