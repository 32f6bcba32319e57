"""Inspect and switch the git state of deployed themes from a web application."""

__version__ = "0.1.0"
