"""MBG Watch - report credibility and verification backend."""

__version__ = "1.0.0"
