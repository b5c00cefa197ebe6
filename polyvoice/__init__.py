"""Polyvoice: multi-voice notation core for the practice journal."""

__version__ = "0.1.0"
