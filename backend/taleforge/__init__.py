"""taleforge - narrative RPG combat core."""

__version__ = "0.1.0"
