"""Phone resale point-of-sale settlement core."""

__version__ = "0.1.0"
