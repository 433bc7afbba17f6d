"""Gatekeeper: multi-pass source-code governance engine."""

__version__ = "1.0.0"
