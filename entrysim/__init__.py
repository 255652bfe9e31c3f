"""Entrysim: near-duplicate detection across a user's feed entries."""
__version__ = "0.3.0"
