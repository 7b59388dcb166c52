"""Summon launcher matching core."""

__version__ = "0.1.0"
