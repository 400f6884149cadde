"""gymflow - automation rule engine for training suggestions."""

__version__ = "0.1.0"
